"""Repository for rider location samples."""

from courier.domain import courier
from courier.rider.location import RiderLocation
from courier.utils.query import fetch_all


@courier.repository(part_of=RiderLocation)
class RiderLocationRepository:
    def latest_for_rider(self, rider_id: str) -> RiderLocation | None:
        result = self._dao.query.filter(rider_id=rider_id).order_by("-recorded_at").limit(1).all()
        return result.first

    def trail(self, rider_id: str, limit: int = 10) -> list[RiderLocation]:
        """Most recent samples first."""
        return self._dao.query.filter(rider_id=rider_id).order_by("-recorded_at").limit(limit).all().items

    def first_for_delivery(self, rider_id: str, shipment_id: str) -> RiderLocation | None:
        """Earliest sample the rider tagged with this shipment."""
        result = (
            self._dao.query.filter(rider_id=rider_id, shipment_id=shipment_id).order_by("recorded_at").limit(1).all()
        )
        return result.first

    def for_rider(self, rider_id: str) -> list[RiderLocation]:
        return fetch_all(self._dao.query.filter(rider_id=rider_id).order_by("recorded_at"))
