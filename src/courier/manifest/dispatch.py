"""Manifest creation — command, handler and the numbering-safe entry point.

A manifest is created at the moment of dispatch: the shipments are
validated as a batch, a day-scoped number is allocated, the manifest is
dispatched straight away and every shipment leaves for the destination.
"""

import json

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.manifest.manifest import Manifest
from courier.manifest.numbering import day_lock, day_prefix, next_manifest_number
from courier.shared.authorization import Actor, ensure_permitted
from courier.shared.errors import ManifestNumberTaken
from courier.shipment.batch import load_batch, status_in
from courier.shipment.shipment import Shipment, ShipmentStatus
from courier.utils.time import utcnow

logger = structlog.get_logger(__name__)

_NUMBERING_ATTEMPTS = 3


@courier.command(part_of="Manifest")
class CreateManifest:
    origin_hub = String(required=True, max_length=100)
    destination_hub = String(required=True, max_length=100)
    awbs = Text(required=True)  # JSON list of AWBs
    rider_id = Identifier()
    notes = String(max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command_handler(part_of=Manifest)
class CreateManifestHandler:
    @handle(CreateManifest)
    def create_manifest(self, command):
        ensure_permitted("manifest.manage", Actor.of(command.actor_id, command.actor_role))

        shipments = load_batch(
            json.loads(command.awbs),
            status_in(ShipmentStatus.IN_HUB, hub=command.origin_hub),
            "create_manifest",
        )

        now = command.occurred_at or utcnow()
        repo = current_domain.repository_for(Manifest)
        number = next_manifest_number(repo.numbers_with_prefix(day_prefix(now)), now)
        if repo.number_taken(number):
            raise ManifestNumberTaken(number)

        manifest = Manifest.create(
            manifest_number=number,
            origin_hub=command.origin_hub,
            destination_hub=command.destination_hub,
            total_shipments=len(shipments),
            created_by=command.actor_id,
            rider_id=command.rider_id,
            notes=command.notes,
            created_at=now,
        )
        manifest.dispatch(command.actor_id, at=now)
        repo.add(manifest)

        shipment_repo = current_domain.repository_for(Shipment)
        for shipment in shipments:
            shipment.dispatch_to_hub(command.destination_hub, command.actor_id, manifest_id=str(manifest.id), at=now)
            shipment_repo.add(shipment)

        logger.info(
            "Manifest dispatched",
            manifest_number=number,
            origin_hub=command.origin_hub,
            destination_hub=command.destination_hub,
            total_shipments=len(shipments),
        )
        return {
            "manifest_id": str(manifest.id),
            "manifest_number": number,
            "total_shipments": len(shipments),
        }


def create_manifest(**fields) -> dict:
    """Process ``CreateManifest`` with its number allocation serialized per day.

    A number collision (another process won the race) is retried with a
    fresh read; after the last attempt the collision propagates.
    """
    if fields.get("occurred_at") is None:
        fields["occurred_at"] = utcnow()
    now = fields["occurred_at"]
    command = CreateManifest(**fields)

    for attempt in range(1, _NUMBERING_ATTEMPTS + 1):
        try:
            with day_lock(day_prefix(now)):
                return current_domain.process(command, asynchronous=False)
        except ManifestNumberTaken as exc:
            if attempt == _NUMBERING_ATTEMPTS:
                raise
            logger.warning(
                "Manifest number collision, retrying",
                manifest_number=exc.manifest_number,
                attempt=attempt,
            )
