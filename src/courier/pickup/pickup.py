"""Pickup aggregate (CQRS) — the first physical handoff from the merchant.

State Machine:
    PENDING → ASSIGNED → IN_PROGRESS → COMPLETED
    ASSIGNED → COMPLETED
    {PENDING, ASSIGNED, IN_PROGRESS} → CANCELLED
"""

from datetime import datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String

from courier.domain import courier
from courier.pickup.events import (
    PickupAssigned,
    PickupCancelled,
    PickupCompleted,
    PickupRequested,
    PickupStarted,
)
from courier.shared.errors import InvalidStateTransition
from courier.utils.time import utcnow


class PickupStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    PickupStatus.PENDING: {PickupStatus.ASSIGNED, PickupStatus.CANCELLED},
    PickupStatus.ASSIGNED: {
        PickupStatus.ASSIGNED,  # reassignment to another agent
        PickupStatus.IN_PROGRESS,
        PickupStatus.COMPLETED,
        PickupStatus.CANCELLED,
    },
    PickupStatus.IN_PROGRESS: {PickupStatus.COMPLETED, PickupStatus.CANCELLED},
    PickupStatus.COMPLETED: set(),  # terminal
    PickupStatus.CANCELLED: set(),  # terminal
}

# Statuses in which the pickup counts as handed to an agent
ASSIGNED_OR_LATER = {PickupStatus.ASSIGNED, PickupStatus.IN_PROGRESS, PickupStatus.COMPLETED}


@courier.aggregate
class Pickup:
    merchant_id = Identifier(required=True)
    agent_id = Identifier()
    status = String(choices=PickupStatus, default=PickupStatus.PENDING.value)
    pickup_address = String(max_length=500)
    pickup_city = String(max_length=100)
    pickup_area = String(max_length=100)
    contact_person = String(max_length=200)
    contact_phone = String(max_length=30)
    scheduled_date = DateTime()
    assigned_at = DateTime()
    pickup_date = DateTime()
    total_shipments = Integer(default=0)
    notes = String(max_length=500)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def request(
        cls,
        merchant_id: str,
        pickup_address: str,
        scheduled_date: datetime | None = None,
        contact_person: str | None = None,
        contact_phone: str | None = None,
        pickup_city: str | None = None,
        pickup_area: str | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
    ):
        now = created_at or utcnow()
        pickup = cls(
            merchant_id=merchant_id,
            pickup_address=pickup_address,
            pickup_city=pickup_city,
            pickup_area=pickup_area,
            contact_person=contact_person,
            contact_phone=contact_phone,
            scheduled_date=scheduled_date,
            notes=notes,
            status=PickupStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        pickup.raise_(
            PickupRequested(
                pickup_id=str(pickup.id),
                merchant_id=str(merchant_id),
                scheduled_date=scheduled_date,
                requested_at=now,
            )
        )
        return pickup

    def _assert_can_transition(self, target_status: PickupStatus) -> None:
        current = PickupStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(current.value, target_status.value, entity="pickup", identifier=str(self.id))

    def assign(self, agent_id: str, at: datetime | None = None) -> None:
        self._assert_can_transition(PickupStatus.ASSIGNED)
        now = at or utcnow()
        self.status = PickupStatus.ASSIGNED.value
        self.agent_id = agent_id
        self.assigned_at = now
        self.updated_at = now
        self.raise_(PickupAssigned(pickup_id=str(self.id), agent_id=str(agent_id), assigned_at=now))

    def start(self, at: datetime | None = None) -> None:
        self._assert_can_transition(PickupStatus.IN_PROGRESS)
        now = at or utcnow()
        self.status = PickupStatus.IN_PROGRESS.value
        self.updated_at = now
        self.raise_(PickupStarted(pickup_id=str(self.id), started_at=now))

    def complete(self, shipment_count: int, at: datetime | None = None) -> None:
        self._assert_can_transition(PickupStatus.COMPLETED)
        now = at or utcnow()
        self.status = PickupStatus.COMPLETED.value
        self.pickup_date = now
        self.total_shipments = shipment_count
        self.updated_at = now
        self.raise_(
            PickupCompleted(
                pickup_id=str(self.id),
                merchant_id=str(self.merchant_id),
                shipment_count=shipment_count,
                completed_at=now,
            )
        )

    def cancel(self, reason: str | None = None, at: datetime | None = None) -> None:
        self._assert_can_transition(PickupStatus.CANCELLED)
        now = at or utcnow()
        self.status = PickupStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(PickupCancelled(pickup_id=str(self.id), reason=reason or "", cancelled_at=now))

    @property
    def handed_to_agent(self) -> bool:
        return PickupStatus(self.status) in ASSIGNED_OR_LATER
