"""Repository for the Shipment aggregate."""

from protean.exceptions import ObjectNotFoundError

from courier.domain import courier
from courier.shipment.shipment import Shipment
from courier.utils.query import fetch_all


@courier.repository(part_of=Shipment)
class ShipmentRepository:
    def get_by_awb(self, awb: str) -> Shipment:
        """Load a shipment by AWB. Raises ObjectNotFoundError when absent."""
        return self._dao.find_by(awb=awb)

    def awb_exists(self, awb: str) -> bool:
        try:
            self._dao.find_by(awb=awb)
        except ObjectNotFoundError:
            return False
        return True

    def find_by_awbs(self, awbs: list[str]) -> dict[str, Shipment]:
        """Map each known AWB to its shipment. Unknown AWBs are simply absent."""
        if not awbs:
            return {}
        found = fetch_all(self._dao.query.filter(awb__in=list(set(awbs))))
        return {s.awb: s for s in found}

    def with_status(self, *statuses: str) -> list[Shipment]:
        return fetch_all(self._dao.query.filter(status__in=list(statuses)))

    def at_hub(self, hub: str, status: str) -> list[Shipment]:
        return fetch_all(self._dao.query.filter(current_hub=hub, status=status))

    def in_manifest(self, manifest_id: str) -> list[Shipment]:
        return fetch_all(self._dao.query.filter(manifest_id=manifest_id))

    def for_pickup(self, pickup_id: str) -> list[Shipment]:
        return fetch_all(self._dao.query.filter(pickup_id=pickup_id))

    def assigned_to_rider(self, rider_id: str, status: str | None = None) -> list[Shipment]:
        query = self._dao.query.filter(rider_id=rider_id)
        if status:
            query = query.filter(status=status)
        return fetch_all(query.order_by("-updated_at"))
