"""Repository for the SLAViolation aggregate."""

from courier.domain import courier
from courier.sla.violation import SLAViolation, ViolationStatus
from courier.utils.query import fetch_all


@courier.repository(part_of=SLAViolation)
class SLAViolationRepository:
    def count_with_status(self, status: ViolationStatus) -> int:
        return len(fetch_all(self._dao.query.filter(status=status.value)))

    def for_shipment(self, shipment_id: str) -> list[SLAViolation]:
        return fetch_all(self._dao.query.filter(shipment_id=shipment_id).order_by("-detected_at"))
