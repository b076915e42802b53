"""Repository for the Pickup aggregate."""

from courier.domain import courier
from courier.pickup.pickup import Pickup
from courier.utils.query import fetch_all


@courier.repository(part_of=Pickup)
class PickupRepository:
    def for_agent(self, agent_id: str, status: str | None = None) -> list[Pickup]:
        query = self._dao.query.filter(agent_id=agent_id)
        if status:
            query = query.filter(status=status)
        return fetch_all(query.order_by("scheduled_date"))
