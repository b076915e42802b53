"""Hub scans — inbound, outbound and sort commands with their handler.

Each scan validates the whole batch before touching any shipment: one
unknown or ineligible AWB rejects the request with the offending AWBs.
"""

import json

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.manifest.manifest import Manifest, ManifestStatus
from courier.shared.authorization import Actor, ensure_permitted
from courier.shipment.batch import load_batch, status_in
from courier.shipment.shipment import Shipment, ShipmentStatus
from courier.utils.time import utcnow

logger = structlog.get_logger(__name__)

INBOUND_STATUSES = (ShipmentStatus.PICKED_UP, ShipmentStatus.IN_TRANSIT, ShipmentStatus.IN_HUB)


@courier.command(part_of="Shipment")
class InboundScan:
    hub = String(required=True, max_length=100)
    awbs = Text(required=True)  # JSON list of AWBs
    manifest_id = Identifier()
    notes = String(max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class OutboundScan:
    hub = String(required=True, max_length=100)
    awbs = Text(required=True)  # JSON list of AWBs
    rider_id = Identifier()
    destination_hub = String(max_length=100)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class SortShipments:
    hub = String(required=True, max_length=100)
    awbs = Text(required=True)  # JSON list of AWBs
    next_hub = String(required=True, max_length=100)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


def _outbound_check(hub: str, rider_id: str | None, destination_hub: str | None):
    in_hub = status_in(ShipmentStatus.IN_HUB, hub=hub)

    def check(shipment: Shipment) -> str | None:
        reason = in_hub(shipment)
        if reason:
            return reason
        if not rider_id and not (destination_hub or shipment.next_hub):
            return "no rider or destination hub to release to"
        return None

    return check


@courier.command_handler(part_of=Shipment)
class HubScanHandler:
    @handle(InboundScan)
    def inbound_scan(self, command):
        ensure_permitted("hub.scan", Actor.of(command.actor_id, command.actor_role))

        shipments = load_batch(json.loads(command.awbs), status_in(*INBOUND_STATUSES), "inbound_scan")
        manifest = None
        if command.manifest_id:
            manifest = current_domain.repository_for(Manifest).get(command.manifest_id)

        now = command.occurred_at or utcnow()
        repo = current_domain.repository_for(Shipment)
        for shipment in shipments:
            shipment.receive_at_hub(command.hub, command.actor_id, manifest_id=command.manifest_id, at=now)
            repo.add(shipment)

        manifest_received = False
        if manifest is not None and ManifestStatus(manifest.status) == ManifestStatus.IN_TRANSIT:
            manifest.receive(
                received_by=command.actor_id,
                received_count=len(shipments),
                notes=command.notes,
                at=now,
            )
            current_domain.repository_for(Manifest).add(manifest)
            manifest_received = True

        logger.info(
            "Inbound scan recorded",
            hub=command.hub,
            scanned=len(shipments),
            manifest_id=command.manifest_id,
        )
        return {
            "hub": command.hub,
            "scanned": [s.awb for s in shipments],
            "manifest_received": manifest_received,
        }

    @handle(OutboundScan)
    def outbound_scan(self, command):
        ensure_permitted("hub.scan", Actor.of(command.actor_id, command.actor_role))

        shipments = load_batch(
            json.loads(command.awbs),
            _outbound_check(command.hub, command.rider_id, command.destination_hub),
            "outbound_scan",
        )

        now = command.occurred_at or utcnow()
        repo = current_domain.repository_for(Shipment)
        for shipment in shipments:
            if command.rider_id:
                shipment.dispatch_to_rider(command.rider_id, command.actor_id, at=now)
            else:
                shipment.dispatch_to_hub(command.destination_hub or shipment.next_hub, command.actor_id, at=now)
            repo.add(shipment)

        return {
            "hub": command.hub,
            "released": [s.awb for s in shipments],
            "status": shipments[0].status,
        }

    @handle(SortShipments)
    def sort_shipments(self, command):
        ensure_permitted("hub.sort", Actor.of(command.actor_id, command.actor_role))

        shipments = load_batch(
            json.loads(command.awbs),
            status_in(ShipmentStatus.IN_HUB, hub=command.hub),
            "sort",
        )
        now = command.occurred_at or utcnow()
        repo = current_domain.repository_for(Shipment)
        for shipment in shipments:
            shipment.sort_to(command.next_hub, command.actor_id, at=now)
            repo.add(shipment)
        return {"hub": command.hub, "next_hub": command.next_hub, "sorted": [s.awb for s in shipments]}
