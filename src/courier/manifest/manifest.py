"""Manifest aggregate (CQRS) — a batch of shipments moving between two hubs.

State Machine:
    CREATED → IN_TRANSIT → RECEIVED → CLOSED

A manifest is created at the moment of physical dispatch, so creation and
dispatch happen in the same operation and CREATED is never observed from
outside. ``total_shipments`` is the expected count frozen at creation.
"""

import json
from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from courier.domain import courier
from courier.manifest.events import (
    ManifestClosed,
    ManifestCreated,
    ManifestDispatched,
    ManifestReceived,
)
from courier.shared.errors import InvalidStateTransition
from courier.utils.time import utcnow


class ManifestStatus(Enum):
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    CLOSED = "closed"


_VALID_TRANSITIONS = {
    ManifestStatus.CREATED: {ManifestStatus.IN_TRANSIT},
    ManifestStatus.IN_TRANSIT: {ManifestStatus.RECEIVED},
    ManifestStatus.RECEIVED: {ManifestStatus.CLOSED},
    ManifestStatus.CLOSED: set(),  # terminal
}


@courier.aggregate
class Manifest:
    manifest_number = String(required=True, max_length=20, unique=True)
    origin_hub = String(required=True, max_length=100)
    destination_hub = String(required=True, max_length=100)
    rider_id = Identifier()
    status = String(choices=ManifestStatus, default=ManifestStatus.CREATED.value)
    total_shipments = Integer(required=True, min_value=1)
    dispatch_date = DateTime()
    received_date = DateTime()
    received_by = String(max_length=100)
    created_by = String(max_length=100)
    notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        manifest_number: str,
        origin_hub: str,
        destination_hub: str,
        total_shipments: int,
        created_by: str,
        rider_id: str | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
    ):
        if origin_hub == destination_hub:
            raise ValidationError({"destination_hub": ["Destination hub must differ from origin hub"]})
        now = created_at or utcnow()
        manifest = cls(
            manifest_number=manifest_number,
            origin_hub=origin_hub,
            destination_hub=destination_hub,
            total_shipments=total_shipments,
            rider_id=rider_id,
            created_by=created_by,
            notes=notes,
            status=ManifestStatus.CREATED.value,
            created_at=now,
            updated_at=now,
        )
        manifest.raise_(
            ManifestCreated(
                manifest_id=str(manifest.id),
                manifest_number=manifest_number,
                origin_hub=origin_hub,
                destination_hub=destination_hub,
                total_shipments=total_shipments,
                created_at=now,
            )
        )
        return manifest

    def _assert_can_transition(self, target_status: ManifestStatus) -> None:
        current = ManifestStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(
                current.value, target_status.value, entity="manifest", identifier=self.manifest_number
            )

    def dispatch(self, actor_id: str, at: datetime | None = None) -> None:
        self._assert_can_transition(ManifestStatus.IN_TRANSIT)
        now = at or utcnow()
        self.status = ManifestStatus.IN_TRANSIT.value
        self.dispatch_date = now
        self.updated_at = now
        self.raise_(
            ManifestDispatched(
                manifest_id=str(self.id),
                manifest_number=self.manifest_number,
                origin_hub=self.origin_hub,
                destination_hub=self.destination_hub,
                rider_id=str(self.rider_id) if self.rider_id else None,
                actor_id=actor_id,
                dispatched_at=now,
            )
        )

    def receive(
        self,
        received_by: str,
        received_count: int,
        not_in_manifest: list[str] | None = None,
        not_received: list[str] | None = None,
        notes: str | None = None,
        at: datetime | None = None,
    ) -> None:
        """Mark received. Discrepancies are recorded in the notes, never refused."""
        self._assert_can_transition(ManifestStatus.RECEIVED)
        now = at or utcnow()
        self.status = ManifestStatus.RECEIVED.value
        self.received_date = now
        self.received_by = received_by
        self.notes = reconciliation_notes(not_in_manifest or [], not_received or [], notes) or self.notes
        self.updated_at = now
        self.raise_(
            ManifestReceived(
                manifest_id=str(self.id),
                manifest_number=self.manifest_number,
                destination_hub=self.destination_hub,
                expected_count=self.total_shipments,
                received_count=received_count,
                not_in_manifest=json.dumps(list(not_in_manifest or [])),
                not_received=json.dumps(list(not_received or [])),
                received_by=received_by,
                received_at=now,
            )
        )

    def close(self, actor_id: str, at: datetime | None = None) -> None:
        self._assert_can_transition(ManifestStatus.CLOSED)
        now = at or utcnow()
        self.status = ManifestStatus.CLOSED.value
        self.updated_at = now
        self.raise_(ManifestClosed(manifest_id=str(self.id), manifest_number=self.manifest_number, closed_at=now))


def reconciliation_notes(not_in_manifest: list[str], not_received: list[str], notes: str | None) -> str:
    """``Extra shipments: ... | Missing shipments: ... | <free text>``"""
    parts = []
    if not_in_manifest:
        parts.append(f"Extra shipments: {', '.join(not_in_manifest)}")
    if not_received:
        parts.append(f"Missing shipments: {', '.join(not_received)}")
    if notes:
        parts.append(notes)
    return " | ".join(parts)
