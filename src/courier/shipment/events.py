"""Shipment domain events — immutable facts about a parcel's movement.

All events are past tense, versioned, and carry enough data for the
side-effect handlers (audit, realtime fan-out, notifications) to act
without reloading the shipment.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from courier.domain import courier


@courier.event(part_of="Shipment")
class ShipmentCreated:
    """A merchant booked a shipment and it was assigned an AWB."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    merchant_id = Identifier(required=True)
    delivery_type = String()
    payment_method = String()
    cod_amount = Float()
    created_at = DateTime(required=True)


@courier.event(part_of="Shipment")
class ShipmentStatusChanged:
    """The shipment moved along an edge of the state machine."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    merchant_id = Identifier(required=True)
    rider_id = Identifier()
    previous_status = String(required=True)
    new_status = String(required=True)
    current_hub = String()
    next_hub = String()
    actor_id = String(required=True)
    reason = String()
    changed_at = DateTime(required=True)


@courier.event(part_of="Shipment")
class DeliveryOtpIssued:
    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    rider_id = Identifier(required=True)
    receiver_phone = String()
    otp_code = String(required=True)
    issued_at = DateTime(required=True)


@courier.event(part_of="Shipment")
class ShipmentDelivered:
    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    merchant_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    cod_collected = Float()
    delivered_at = DateTime(required=True)


@courier.event(part_of="Shipment")
class DeliveryAttemptFailed:
    """A rider could not hand the parcel over."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    merchant_id = Identifier(required=True)
    rider_id = Identifier()
    attempt_number = Integer(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@courier.event(part_of="Shipment")
class ReturnToOriginInitiated:
    """The shipment is heading back to the merchant.

    ``automatic`` is set when the attempt limit triggered the return rather
    than a rider's decision.
    """

    __version__ = 1

    shipment_id = Identifier(required=True)
    awb = String(required=True)
    merchant_id = Identifier(required=True)
    reason = String(required=True)
    automatic = Boolean(default=False)
    delivery_attempts = Integer()
    initiated_at = DateTime(required=True)
