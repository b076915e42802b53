"""Pydantic API schemas for the courier service.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class CreateShipmentRequest(BaseModel):
    merchant_id: str
    customer_id: str | None = None
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    delivery_area: str | None = None
    weight: float = 0.0
    delivery_type: str = "normal"
    payment_method: str = "prepaid"
    cod_amount: float = 0.0
    expected_delivery_date: datetime | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    hub: str | None = None
    next_hub: str | None = None
    rider_id: str | None = None
    reason: str | None = None


class CancelShipmentRequest(BaseModel):
    reason: str


class CreatePickupRequest(BaseModel):
    merchant_id: str
    pickup_address: str
    pickup_city: str | None = None
    pickup_area: str | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    scheduled_date: datetime | None = None
    notes: str | None = None
    awbs: list[str] = Field(default_factory=list)


class AssignPickupRequest(BaseModel):
    agent_id: str


class CompletePickupRequest(BaseModel):
    awbs: list[str] | None = None


class CancelPickupRequest(BaseModel):
    reason: str | None = None


class InboundScanRequest(BaseModel):
    hub: str
    awbs: list[str]
    manifest_id: str | None = None
    notes: str | None = None


class OutboundScanRequest(BaseModel):
    hub: str
    awbs: list[str]
    rider_id: str | None = None
    destination_hub: str | None = None


class SortRequest(BaseModel):
    hub: str
    awbs: list[str]
    next_hub: str


class CreateManifestRequest(BaseModel):
    origin_hub: str
    destination_hub: str
    awbs: list[str]
    rider_id: str | None = None
    notes: str | None = None


class ReceiveManifestRequest(BaseModel):
    hub: str
    awbs: list[str]
    notes: str | None = None


class CompleteDeliveryRequest(BaseModel):
    otp_code: str
    cod_amount_collected: float | None = None
    signature_url: str | None = None
    pod_photo_url: str | None = None
    delivery_note: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class FailedDeliveryRequest(BaseModel):
    reason: str
    notes: str | None = None
    photo_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class ReturnToOriginRequest(BaseModel):
    reason: str
    notes: str | None = None


class RiderLocationRequest(BaseModel):
    latitude: float
    longitude: float
    shipment_awb: str | None = None
    accuracy: float | None = None
    speed: float | None = None
    heading: float | None = None
    battery_level: float | None = None
    is_online: bool = True


class SweepRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class ShipmentCreatedResponse(BaseModel):
    awb: str


class StatusResponse(BaseModel):
    status: str


class PickupIdResponse(BaseModel):
    pickup_id: str


class PickupCompletedResponse(BaseModel):
    pickup_id: str
    collected: list[str]
    not_collected: list[str]


class InboundScanResponse(BaseModel):
    hub: str
    scanned: list[str]
    manifest_received: bool


class OutboundScanResponse(BaseModel):
    hub: str
    released: list[str]
    status: str


class SortResponse(BaseModel):
    hub: str
    next_hub: str
    sorted: list[str]


class ManifestCreatedResponse(BaseModel):
    manifest_id: str
    manifest_number: str
    total_shipments: int


class Discrepancies(BaseModel):
    not_in_manifest: list[str]
    not_received: list[str]
    skipped: dict[str, str] = Field(default_factory=dict)


class ManifestReceivedResponse(BaseModel):
    manifest_id: str
    manifest_number: str
    expected_count: int
    received_count: int
    discrepancies: Discrepancies


class OtpResponse(BaseModel):
    awb: str
    otp_generated: bool


class DeliveredResponse(BaseModel):
    awb: str
    delivered_at: datetime
    cod_collected: float | None = None


class FailedAttemptResponse(BaseModel):
    awb: str
    delivery_attempts: int
    status: str
    auto_rto: bool


class ReturnToOriginResponse(BaseModel):
    awb: str
    status: str
    rto_reason: str | None = None


class LocationRecordedResponse(BaseModel):
    location_id: str
