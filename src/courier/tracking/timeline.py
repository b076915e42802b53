"""Tracking timeline — rebuilt on read from the records a shipment touches.

There is no event log behind a shipment; each entry is derived:

    pending           shipment.created_at
    pickup_assigned   pickup.assigned_at (falls back to pickup.updated_at)
    picked_up         pickup.pickup_date once the pickup is completed
    in_hub            pickup_date + 2h, an estimate of first hub arrival
    in_transit        manifest.dispatch_date
    in_hub            manifest.received_date at the destination hub
    out_for_delivery  first rider location sample tagged with the shipment
    failed_delivery   now - attempts * 2h, an estimate
    delivered         shipment.actual_delivery_date
    rto_initiated     now, when the RTO flag is set

Entries are sorted by timestamp, oldest first. The estimates are
approximations and are kept as such.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from courier.pickup.pickup import ASSIGNED_OR_LATER, PickupStatus
from courier.shipment.shipment import ShipmentStatus
from courier.utils.time import as_utc

HUB_ARRIVAL_OFFSET = timedelta(hours=2)
FAILED_ATTEMPT_INTERVAL = timedelta(hours=2)

_PICKUP_HANDED_OVER = {status.value for status in ASSIGNED_OR_LATER}

_REACHED_HUB = {
    ShipmentStatus.IN_HUB.value,
    ShipmentStatus.IN_TRANSIT.value,
    ShipmentStatus.OUT_FOR_DELIVERY.value,
    ShipmentStatus.DELIVERED.value,
    ShipmentStatus.FAILED_DELIVERY.value,
}

_WITH_RIDER = {
    ShipmentStatus.OUT_FOR_DELIVERY.value,
    ShipmentStatus.DELIVERED.value,
    ShipmentStatus.FAILED_DELIVERY.value,
}


@dataclass(frozen=True)
class TimelineEvent:
    status: str
    timestamp: datetime
    description: str
    location: str | None = None
    actor: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
            "location": self.location,
            "actor": self.actor,
        }


def build_timeline(shipment, now: datetime, pickup=None, manifest=None, first_delivery_sample=None) -> list:
    events = []

    if shipment.created_at:
        events.append(
            TimelineEvent(
                status=ShipmentStatus.PENDING.value,
                timestamp=as_utc(shipment.created_at),
                description="Shipment created by merchant",
                actor=str(shipment.merchant_id),
            )
        )

    if pickup is not None:
        agent = str(pickup.agent_id) if pickup.agent_id else None
        assigned_at = pickup.assigned_at or pickup.updated_at
        if pickup.status in _PICKUP_HANDED_OVER and assigned_at:
            events.append(
                TimelineEvent(
                    status=ShipmentStatus.PICKUP_ASSIGNED.value,
                    timestamp=as_utc(assigned_at),
                    description="Pickup assigned to agent",
                    location=pickup.pickup_address,
                    actor=agent,
                )
            )
        if pickup.status == PickupStatus.COMPLETED.value and pickup.pickup_date:
            events.append(
                TimelineEvent(
                    status=ShipmentStatus.PICKED_UP.value,
                    timestamp=as_utc(pickup.pickup_date),
                    description="Shipment picked up by agent",
                    location=pickup.pickup_address,
                    actor=agent,
                )
            )
            if shipment.status in _REACHED_HUB:
                events.append(
                    TimelineEvent(
                        status=ShipmentStatus.IN_HUB.value,
                        timestamp=as_utc(pickup.pickup_date) + HUB_ARRIVAL_OFFSET,
                        description="Arrived at hub for sorting",
                        location=shipment.current_hub or "Origin Hub",
                    )
                )

    if manifest is not None:
        if manifest.dispatch_date:
            events.append(
                TimelineEvent(
                    status=ShipmentStatus.IN_TRANSIT.value,
                    timestamp=as_utc(manifest.dispatch_date),
                    description=f"Dispatched to {manifest.destination_hub}",
                    location=f"{manifest.origin_hub} → {manifest.destination_hub}",
                    actor=str(manifest.rider_id) if manifest.rider_id else None,
                )
            )
        if manifest.received_date:
            events.append(
                TimelineEvent(
                    status=ShipmentStatus.IN_HUB.value,
                    timestamp=as_utc(manifest.received_date),
                    description=f"Received at {manifest.destination_hub}",
                    location=manifest.destination_hub,
                )
            )

    rider = str(shipment.rider_id) if shipment.rider_id else None
    if shipment.status in _WITH_RIDER and first_delivery_sample is not None:
        events.append(
            TimelineEvent(
                status=ShipmentStatus.OUT_FOR_DELIVERY.value,
                timestamp=as_utc(first_delivery_sample.recorded_at),
                description="Out for delivery",
                location=shipment.delivery_area,
                actor=rider,
            )
        )

    if shipment.delivery_attempts and shipment.failed_reason:
        events.append(
            TimelineEvent(
                status=ShipmentStatus.FAILED_DELIVERY.value,
                timestamp=now - FAILED_ATTEMPT_INTERVAL * shipment.delivery_attempts,
                description=f"Delivery attempt failed: {shipment.failed_reason}",
                location=shipment.delivery_area,
                actor=rider,
            )
        )

    if shipment.actual_delivery_date:
        events.append(
            TimelineEvent(
                status=ShipmentStatus.DELIVERED.value,
                timestamp=as_utc(shipment.actual_delivery_date),
                description="Shipment delivered successfully",
                location=shipment.receiver_address,
                actor=rider,
            )
        )

    if shipment.is_rto:
        events.append(
            TimelineEvent(
                status=ShipmentStatus.RTO_INITIATED.value,
                timestamp=now,
                description=f"Return to origin: {shipment.rto_reason}",
                location=shipment.current_hub,
            )
        )

    return sorted(events, key=lambda event: event.timestamp)
