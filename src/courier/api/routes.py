"""FastAPI routes for the courier service."""

import asyncio
import json
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from courier.api.dependencies import get_actor, get_monitor, get_services
from courier.api.schemas import (
    AssignPickupRequest,
    CancelPickupRequest,
    CancelShipmentRequest,
    CompleteDeliveryRequest,
    CompletePickupRequest,
    CreateManifestRequest,
    CreatePickupRequest,
    CreateShipmentRequest,
    DeliveredResponse,
    FailedAttemptResponse,
    FailedDeliveryRequest,
    InboundScanRequest,
    InboundScanResponse,
    LocationRecordedResponse,
    ManifestCreatedResponse,
    ManifestReceivedResponse,
    OtpResponse,
    OutboundScanRequest,
    OutboundScanResponse,
    PickupCompletedResponse,
    PickupIdResponse,
    ReceiveManifestRequest,
    ReturnToOriginRequest,
    ReturnToOriginResponse,
    RiderLocationRequest,
    ShipmentCreatedResponse,
    SortRequest,
    SortResponse,
    StatusResponse,
    SweepRequest,
    UpdateStatusRequest,
)
from courier.hub.inventory import hub_inventory
from courier.hub.scanning import InboundScan, OutboundScan, SortShipments
from courier.manifest.dispatch import create_manifest
from courier.manifest.queries import list_manifests, manifest_statistics
from courier.manifest.receipt import CloseManifest, ReceiveManifest
from courier.pickup.management import AssignPickup, CancelPickup, CompletePickup, CreatePickup, StartPickup
from courier.rider.location_updates import RecordRiderLocation
from courier.rider.queries import rider_manifests, rider_pickups, rider_shipments
from courier.services import Services
from courier.shared.authorization import Actor, ensure_permitted
from courier.shipment.creation import CreateShipment
from courier.shipment.delivery import CompleteDelivery, GenerateDeliveryOtp, MarkReturnToOrigin, RecordFailedDelivery
from courier.shipment.status import CancelShipment, UpdateShipmentStatus
from courier.sla.monitor import SLAMonitor
from courier.tracking.service import detailed_tracking, public_tracking


def _actor_fields(actor: Actor) -> dict:
    return {"actor_id": actor.id, "actor_role": actor.role.value}


# ---------------------------------------------------------------------------
# Shipment Router
# ---------------------------------------------------------------------------
shipment_router = APIRouter(prefix="/shipments", tags=["shipments"])


@shipment_router.post("", status_code=201, response_model=ShipmentCreatedResponse)
async def create_shipment(
    body: CreateShipmentRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> ShipmentCreatedResponse:
    """Book a new shipment and assign its AWB."""
    command = CreateShipment(**body.model_dump(), created_at=services.now(), **_actor_fields(actor))
    awb = current_domain.process(command, asynchronous=False)
    return ShipmentCreatedResponse(awb=awb)


@shipment_router.get("/{awb}")
async def get_shipment(
    awb: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> dict:
    return detailed_tracking(awb, services, actor)


@shipment_router.put("/{awb}/status", response_model=StatusResponse)
async def update_shipment_status(
    awb: str,
    body: UpdateStatusRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    """Move a shipment along the state machine (operators only)."""
    command = UpdateShipmentStatus(awb=awb, **body.model_dump(), occurred_at=services.now(), **_actor_fields(actor))
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@shipment_router.put("/{awb}/cancel", response_model=StatusResponse)
async def cancel_shipment(
    awb: str,
    body: CancelShipmentRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    command = CancelShipment(awb=awb, reason=body.reason, occurred_at=services.now(), **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Pickup Router
# ---------------------------------------------------------------------------
pickup_router = APIRouter(prefix="/pickups", tags=["pickups"])


@pickup_router.post("", status_code=201, response_model=PickupIdResponse)
async def create_pickup(
    body: CreatePickupRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> PickupIdResponse:
    """Request a pickup for a merchant's pending shipments."""
    fields = body.model_dump()
    fields["awbs"] = json.dumps(fields["awbs"])
    command = CreatePickup(**fields, occurred_at=services.now(), **_actor_fields(actor))
    pickup_id = current_domain.process(command, asynchronous=False)
    return PickupIdResponse(pickup_id=pickup_id)


@pickup_router.put("/{pickup_id}/assign", response_model=StatusResponse)
async def assign_pickup(
    pickup_id: str,
    body: AssignPickupRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    command = AssignPickup(
        pickup_id=pickup_id,
        agent_id=body.agent_id,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="assigned")


@pickup_router.put("/{pickup_id}/start", response_model=StatusResponse)
async def start_pickup(
    pickup_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    command = StartPickup(pickup_id=pickup_id, occurred_at=services.now(), **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="in_progress")


@pickup_router.put("/{pickup_id}/complete", response_model=PickupCompletedResponse)
async def complete_pickup(
    pickup_id: str,
    body: CompletePickupRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> PickupCompletedResponse:
    """Collect the scanned shipments; all of them or none."""
    command = CompletePickup(
        pickup_id=pickup_id,
        awbs=json.dumps(body.awbs) if body.awbs is not None else None,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    result = current_domain.process(command, asynchronous=False)
    return PickupCompletedResponse(**result)


@pickup_router.put("/{pickup_id}/cancel", response_model=StatusResponse)
async def cancel_pickup(
    pickup_id: str,
    body: CancelPickupRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    command = CancelPickup(pickup_id=pickup_id, reason=body.reason, occurred_at=services.now(), **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Hub Router
# ---------------------------------------------------------------------------
hub_router = APIRouter(prefix="/hub", tags=["hub"])


@hub_router.post("/inbound", response_model=InboundScanResponse)
async def inbound_scan(
    body: InboundScanRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> InboundScanResponse:
    """Receive parcels at a hub. One bad AWB rejects the whole scan."""
    command = InboundScan(
        hub=body.hub,
        awbs=json.dumps(body.awbs),
        manifest_id=body.manifest_id,
        notes=body.notes,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    return InboundScanResponse(**current_domain.process(command, asynchronous=False))


@hub_router.post("/outbound", response_model=OutboundScanResponse)
async def outbound_scan(
    body: OutboundScanRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OutboundScanResponse:
    """Release parcels to a rider or toward the next hub."""
    command = OutboundScan(
        hub=body.hub,
        awbs=json.dumps(body.awbs),
        rider_id=body.rider_id,
        destination_hub=body.destination_hub,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    return OutboundScanResponse(**current_domain.process(command, asynchronous=False))


@hub_router.post("/sort", response_model=SortResponse)
async def sort_shipments(
    body: SortRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SortResponse:
    command = SortShipments(
        hub=body.hub,
        awbs=json.dumps(body.awbs),
        next_hub=body.next_hub,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    return SortResponse(**current_domain.process(command, asynchronous=False))


@hub_router.get("/{hub}/inventory")
async def get_hub_inventory(hub: str, actor: Actor = Depends(get_actor)) -> dict:
    ensure_permitted("hub.view", actor)
    return hub_inventory(hub)


# ---------------------------------------------------------------------------
# Manifest Router
# ---------------------------------------------------------------------------
manifest_router = APIRouter(prefix="/manifests", tags=["manifests"])


@manifest_router.post("", status_code=201, response_model=ManifestCreatedResponse)
async def create_manifest_route(
    body: CreateManifestRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> ManifestCreatedResponse:
    """Create a manifest from in-hub shipments and dispatch it immediately."""
    result = create_manifest(
        origin_hub=body.origin_hub,
        destination_hub=body.destination_hub,
        awbs=json.dumps(body.awbs),
        rider_id=body.rider_id,
        notes=body.notes,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    return ManifestCreatedResponse(**result)


@manifest_router.get("")
async def get_manifests(
    status: str | None = None,
    origin_hub: str | None = None,
    destination_hub: str | None = None,
    rider_id: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
) -> dict:
    ensure_permitted("hub.view", actor)
    return list_manifests(
        status=status,
        origin_hub=origin_hub,
        destination_hub=destination_hub,
        rider_id=rider_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        limit=limit,
    )


@manifest_router.get("/statistics")
async def get_manifest_statistics(hub: str | None = None, actor: Actor = Depends(get_actor)) -> dict:
    ensure_permitted("hub.view", actor)
    return manifest_statistics(hub)


@manifest_router.put("/{manifest_id}/receive", response_model=ManifestReceivedResponse)
async def receive_manifest(
    manifest_id: str,
    body: ReceiveManifestRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> ManifestReceivedResponse:
    """Reconcile scanned AWBs against the manifest; discrepancies are returned, not raised."""
    command = ReceiveManifest(
        manifest_id=manifest_id,
        hub=body.hub,
        awbs=json.dumps(body.awbs),
        notes=body.notes,
        occurred_at=services.now(),
        **_actor_fields(actor),
    )
    return ManifestReceivedResponse(**current_domain.process(command, asynchronous=False))


@manifest_router.put("/{manifest_id}/close", response_model=StatusResponse)
async def close_manifest(
    manifest_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> StatusResponse:
    command = CloseManifest(manifest_id=manifest_id, occurred_at=services.now(), **_actor_fields(actor))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="closed")


# ---------------------------------------------------------------------------
# Rider Router
# ---------------------------------------------------------------------------
rider_router = APIRouter(prefix="/rider", tags=["rider"])


@rider_router.post("/shipments/{awb}/otp", response_model=OtpResponse)
async def generate_delivery_otp(
    awb: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OtpResponse:
    """Issue a delivery OTP; the code goes to the receiver by SMS, never to the rider."""
    command = GenerateDeliveryOtp(awb=awb, occurred_at=services.now(), **_actor_fields(actor))
    result = current_domain.process(command, asynchronous=False)
    return OtpResponse(**result)


@rider_router.post("/shipments/{awb}/deliver", response_model=DeliveredResponse)
async def complete_delivery(
    awb: str,
    body: CompleteDeliveryRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> DeliveredResponse:
    command = CompleteDelivery(awb=awb, **body.model_dump(), occurred_at=services.now(), **_actor_fields(actor))
    return DeliveredResponse(**current_domain.process(command, asynchronous=False))


@rider_router.post("/shipments/{awb}/fail", response_model=FailedAttemptResponse)
async def record_failed_delivery(
    awb: str,
    body: FailedDeliveryRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> FailedAttemptResponse:
    """Record a failed attempt. The third failure returns the parcel to origin."""
    command = RecordFailedDelivery(awb=awb, **body.model_dump(), occurred_at=services.now(), **_actor_fields(actor))
    return FailedAttemptResponse(**current_domain.process(command, asynchronous=False))


@rider_router.post("/shipments/{awb}/rto", response_model=ReturnToOriginResponse)
async def mark_return_to_origin(
    awb: str,
    body: ReturnToOriginRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> ReturnToOriginResponse:
    command = MarkReturnToOrigin(awb=awb, **body.model_dump(), occurred_at=services.now(), **_actor_fields(actor))
    return ReturnToOriginResponse(**current_domain.process(command, asynchronous=False))


@rider_router.post("/location", status_code=201, response_model=LocationRecordedResponse)
async def record_rider_location(
    body: RiderLocationRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> LocationRecordedResponse:
    command = RecordRiderLocation(**body.model_dump(), recorded_at=services.now(), **_actor_fields(actor))
    return LocationRecordedResponse(location_id=current_domain.process(command, asynchronous=False))


@rider_router.get("/shipments")
async def get_rider_shipments(status: str | None = None, actor: Actor = Depends(get_actor)) -> list[dict]:
    ensure_permitted("rider.queue", actor)
    return rider_shipments(actor.id, status)


@rider_router.get("/manifests")
async def get_rider_manifests(status: str | None = None, actor: Actor = Depends(get_actor)) -> list[dict]:
    ensure_permitted("rider.queue", actor)
    return rider_manifests(actor.id, status)


@rider_router.get("/pickups")
async def get_rider_pickups(status: str | None = None, actor: Actor = Depends(get_actor)) -> list[dict]:
    ensure_permitted("rider.queue", actor)
    return rider_pickups(actor.id, status)


# ---------------------------------------------------------------------------
# SLA Router
# ---------------------------------------------------------------------------
sla_router = APIRouter(prefix="/sla", tags=["sla"])


@sla_router.get("/statistics")
async def get_sla_statistics(actor: Actor = Depends(get_actor), monitor: SLAMonitor = Depends(get_monitor)) -> dict:
    ensure_permitted("sla.inspect", actor)
    # Full status scans; keep them off the event loop
    return await asyncio.to_thread(monitor.statistics)


@sla_router.get("/shipments/{awb}")
async def check_shipment_sla(
    awb: str,
    actor: Actor = Depends(get_actor),
    monitor: SLAMonitor = Depends(get_monitor),
) -> dict:
    """Evaluate every rule for one shipment without alerting."""
    ensure_permitted("sla.inspect", actor)
    return monitor.check_shipment(awb)


@sla_router.get("/queue")
async def get_sla_queue(actor: Actor = Depends(get_actor), monitor: SLAMonitor = Depends(get_monitor)) -> dict:
    ensure_permitted("sla.inspect", actor)
    return monitor.queue_status()


@sla_router.post("/sweep")
async def trigger_sla_sweep(
    body: SweepRequest | None = None,
    actor: Actor = Depends(get_actor),
    monitor: SLAMonitor = Depends(get_monitor),
) -> dict:
    ensure_permitted("sla.sweep", actor)
    return await asyncio.to_thread(monitor.sweep, body.as_of if body else None)


# ---------------------------------------------------------------------------
# Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])


@tracking_router.get("/{awb}")
async def track_shipment(
    awb: str,
    phone: str | None = Query(default=None, min_length=4, max_length=4),
    services: Services = Depends(get_services),
) -> dict:
    """Public tracking. ``phone`` is the last four digits of the receiver's number."""
    return public_tracking(awb, services, phone_last_four=phone)


@tracking_router.get("/{awb}/details")
async def track_shipment_details(
    awb: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> dict:
    return detailed_tracking(awb, services, actor)
