"""Manifest receipt and closing — commands and handler.

Receipt reconciles the manifest's expected shipments against the AWBs the
destination hub actually scanned. The two difference sets are the output
of a successful receipt, not an error: the manifest always reaches
RECEIVED, and only shipments both expected and scanned move into the hub.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.manifest.manifest import Manifest, ManifestStatus
from courier.shared.authorization import Actor, ensure_permitted
from courier.shared.errors import InvalidStateTransition
from courier.shipment.batch import normalize_awbs
from courier.shipment.shipment import Shipment, ShipmentStatus, can_transition
from courier.utils.time import utcnow

logger = structlog.get_logger(__name__)


@courier.command(part_of="Manifest")
class ReceiveManifest:
    manifest_id = Identifier(required=True)
    hub = String(required=True, max_length=100)
    awbs = Text(required=True)  # JSON list of scanned AWBs
    notes = String(max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Manifest")
class CloseManifest:
    manifest_id = Identifier(required=True)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


def reconcile(expected: list[str], scanned: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Split into (matched, not_in_manifest, not_received), preserving input order."""
    expected_set = set(expected)
    scanned_set = set(scanned)
    matched = [awb for awb in scanned if awb in expected_set]
    not_in_manifest = [awb for awb in scanned if awb not in expected_set]
    not_received = [awb for awb in expected if awb not in scanned_set]
    return matched, not_in_manifest, not_received


@courier.command_handler(part_of=Manifest)
class ManifestReceiptHandler:
    @handle(ReceiveManifest)
    def receive_manifest(self, command):
        ensure_permitted("manifest.manage", Actor.of(command.actor_id, command.actor_role))

        repo = current_domain.repository_for(Manifest)
        manifest = repo.get(command.manifest_id)
        if ManifestStatus(manifest.status) != ManifestStatus.IN_TRANSIT:
            raise InvalidStateTransition(
                manifest.status, ManifestStatus.RECEIVED.value, entity="manifest", identifier=manifest.manifest_number
            )
        if command.hub != manifest.destination_hub:
            raise ValidationError(
                {"hub": [f"Manifest {manifest.manifest_number} is bound for {manifest.destination_hub}"]}
            )

        shipment_repo = current_domain.repository_for(Shipment)
        expected_shipments = {s.awb: s for s in shipment_repo.in_manifest(str(manifest.id))}
        scanned = normalize_awbs(json.loads(command.awbs))
        matched, not_in_manifest, not_received = reconcile(sorted(expected_shipments), scanned)

        now = command.occurred_at or utcnow()
        received, skipped = [], {}
        for awb in matched:
            shipment = expected_shipments[awb]
            if not can_transition(shipment.current_status, ShipmentStatus.IN_HUB):
                skipped[awb] = f"invalid status {shipment.status}"
                continue
            shipment.receive_at_hub(command.hub, command.actor_id, manifest_id=str(manifest.id), at=now)
            shipment_repo.add(shipment)
            received.append(awb)

        manifest.receive(
            received_by=command.actor_id,
            received_count=len(received),
            not_in_manifest=not_in_manifest,
            not_received=not_received,
            notes=command.notes,
            at=now,
        )
        repo.add(manifest)

        if not_in_manifest or not_received or skipped:
            logger.warning(
                "Manifest received with discrepancies",
                manifest_number=manifest.manifest_number,
                not_in_manifest=not_in_manifest,
                not_received=not_received,
                skipped=skipped,
            )
        return {
            "manifest_id": str(manifest.id),
            "manifest_number": manifest.manifest_number,
            "expected_count": manifest.total_shipments,
            "received_count": len(received),
            "discrepancies": {
                "not_in_manifest": not_in_manifest,
                "not_received": not_received,
                "skipped": skipped,
            },
        }

    @handle(CloseManifest)
    def close_manifest(self, command):
        ensure_permitted("manifest.manage", Actor.of(command.actor_id, command.actor_role))
        repo = current_domain.repository_for(Manifest)
        manifest = repo.get(command.manifest_id)
        manifest.close(command.actor_id, at=command.occurred_at)
        repo.add(manifest)
