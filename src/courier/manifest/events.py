"""Manifest domain events."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from courier.domain import courier


@courier.event(part_of="Manifest")
class ManifestCreated:
    __version__ = 1

    manifest_id = Identifier(required=True)
    manifest_number = String(required=True)
    origin_hub = String(required=True)
    destination_hub = String(required=True)
    total_shipments = Integer(required=True)
    created_at = DateTime(required=True)


@courier.event(part_of="Manifest")
class ManifestDispatched:
    """The manifest left its origin hub."""

    __version__ = 1

    manifest_id = Identifier(required=True)
    manifest_number = String(required=True)
    origin_hub = String(required=True)
    destination_hub = String(required=True)
    rider_id = Identifier()
    actor_id = String(required=True)
    dispatched_at = DateTime(required=True)


@courier.event(part_of="Manifest")
class ManifestReceived:
    """The destination hub reconciled the manifest against its scans."""

    __version__ = 1

    manifest_id = Identifier(required=True)
    manifest_number = String(required=True)
    destination_hub = String(required=True)
    expected_count = Integer(required=True)
    received_count = Integer(required=True)
    not_in_manifest = Text()  # JSON list of AWBs scanned but not expected
    not_received = Text()  # JSON list of AWBs expected but not scanned
    received_by = String()
    received_at = DateTime(required=True)


@courier.event(part_of="Manifest")
class ManifestClosed:
    __version__ = 1

    manifest_id = Identifier(required=True)
    manifest_number = String(required=True)
    closed_at = DateTime(required=True)
