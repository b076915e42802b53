"""Pickup domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from courier.domain import courier


@courier.event(part_of="Pickup")
class PickupRequested:
    __version__ = 1

    pickup_id = Identifier(required=True)
    merchant_id = Identifier(required=True)
    scheduled_date = DateTime()
    requested_at = DateTime(required=True)


@courier.event(part_of="Pickup")
class PickupAssigned:
    __version__ = 1

    pickup_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    assigned_at = DateTime(required=True)


@courier.event(part_of="Pickup")
class PickupStarted:
    __version__ = 1

    pickup_id = Identifier(required=True)
    started_at = DateTime(required=True)


@courier.event(part_of="Pickup")
class PickupCompleted:
    __version__ = 1

    pickup_id = Identifier(required=True)
    merchant_id = Identifier(required=True)
    shipment_count = Integer(required=True)
    completed_at = DateTime(required=True)


@courier.event(part_of="Pickup")
class PickupCancelled:
    __version__ = 1

    pickup_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
