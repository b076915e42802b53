"""Manifest, pickup and rider side effects — audit trail and live hub feeds."""

import json

from protean.utils.mixins import handle

from courier.audit.port import AuditEntry
from courier.domain import courier
from courier.manifest.events import ManifestClosed, ManifestDispatched, ManifestReceived
from courier.manifest.manifest import Manifest
from courier.pickup.events import PickupAssigned, PickupCancelled, PickupCompleted
from courier.pickup.pickup import Pickup
from courier.rider.location import RiderLocation, RiderLocationRecorded
from courier.services import current_services
from courier.shared.side_effects import attempt


def _audit(actor, entity_type, entity_id, action, description, occurred_at, after=None):
    services = current_services()
    attempt(
        "Audit write",
        lambda: services.audit.write(
            AuditEntry(
                actor=actor,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                after=after,
                description=description,
                occurred_at=occurred_at,
            )
        ),
        entity_type=entity_type,
        entity_id=str(entity_id),
    )


def _publish(topic: str, payload: dict) -> None:
    services = current_services()
    attempt("Realtime publish", lambda: services.realtime.publish(topic, payload), topic=topic)


@courier.event_handler(part_of=Manifest)
class ManifestSideEffects:
    @handle(ManifestDispatched)
    def on_dispatched(self, event: ManifestDispatched) -> None:
        _audit(
            event.actor_id,
            "manifest",
            event.manifest_id,
            "dispatched",
            f"Manifest {event.manifest_number} dispatched {event.origin_hub} → {event.destination_hub}",
            event.dispatched_at,
        )
        _publish(
            f"hub-{event.destination_hub}",
            {"manifest_number": event.manifest_number, "status": "in_transit", "origin_hub": event.origin_hub},
        )

    @handle(ManifestReceived)
    def on_received(self, event: ManifestReceived) -> None:
        discrepancies = {
            "not_in_manifest": json.loads(event.not_in_manifest or "[]"),
            "not_received": json.loads(event.not_received or "[]"),
        }
        _audit(
            event.received_by or "unknown",
            "manifest",
            event.manifest_id,
            "received",
            f"Manifest {event.manifest_number} received {event.received_count}/{event.expected_count}",
            event.received_at,
            after=discrepancies,
        )
        _publish(
            f"hub-{event.destination_hub}",
            {"manifest_number": event.manifest_number, "status": "received", **discrepancies},
        )

    @handle(ManifestClosed)
    def on_closed(self, event: ManifestClosed) -> None:
        _audit("system", "manifest", event.manifest_id, "closed", f"Manifest {event.manifest_number} closed", event.closed_at)


@courier.event_handler(part_of=Pickup)
class PickupSideEffects:
    @handle(PickupAssigned)
    def on_assigned(self, event: PickupAssigned) -> None:
        _audit(str(event.agent_id), "pickup", event.pickup_id, "assigned", "Pickup assigned", event.assigned_at)

    @handle(PickupCompleted)
    def on_completed(self, event: PickupCompleted) -> None:
        _audit(
            "system",
            "pickup",
            event.pickup_id,
            "completed",
            f"Pickup completed with {event.shipment_count} shipment(s)",
            event.completed_at,
        )
        _publish(f"merchant-{event.merchant_id}", {"pickup_id": str(event.pickup_id), "status": "completed"})

    @handle(PickupCancelled)
    def on_cancelled(self, event: PickupCancelled) -> None:
        _audit("system", "pickup", event.pickup_id, "cancelled", event.reason or "Pickup cancelled", event.cancelled_at)


@courier.event_handler(part_of=RiderLocation)
class RiderLocationSideEffects:
    @handle(RiderLocationRecorded)
    def on_location(self, event: RiderLocationRecorded) -> None:
        _publish(
            f"rider-{event.rider_id}",
            {
                "latitude": event.latitude,
                "longitude": event.longitude,
                "shipment_id": str(event.shipment_id) if event.shipment_id else None,
                "recorded_at": event.recorded_at.isoformat(),
            },
        )
