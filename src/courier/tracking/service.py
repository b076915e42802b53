"""Tracking queries — public summary and authenticated detailed view."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from courier.manifest.manifest import Manifest
from courier.pickup.pickup import Pickup
from courier.rider.location import RiderLocation
from courier.services import Services
from courier.shared.authorization import Actor, Role, ensure_permitted
from courier.shared.errors import PhoneVerificationFailed
from courier.shipment.shipment import Shipment, ShipmentStatus
from courier.tracking.eta import estimate_eta
from courier.tracking.keys import PUBLIC_TRACKING_TTL_SECONDS, public_cache_key
from courier.tracking.timeline import build_timeline

logger = structlog.get_logger(__name__)


def _isoformat(value):
    return value.isoformat() if value else None


def _load_optional(aggregate_cls, identifier):
    if not identifier:
        return None
    try:
        return current_domain.repository_for(aggregate_cls).get(identifier)
    except ObjectNotFoundError:
        logger.warning("Linked record missing", entity=aggregate_cls.__name__, identifier=str(identifier))
        return None


def shipment_timeline(shipment: Shipment, now) -> list[dict]:
    pickup = _load_optional(Pickup, shipment.pickup_id)
    manifest = _load_optional(Manifest, shipment.manifest_id)
    first_sample = None
    if shipment.rider_id:
        first_sample = current_domain.repository_for(RiderLocation).first_for_delivery(
            str(shipment.rider_id), str(shipment.id)
        )
    events = build_timeline(shipment, now, pickup=pickup, manifest=manifest, first_delivery_sample=first_sample)
    return [event.to_dict() for event in events]


def public_tracking(awb: str, services: Services, phone_last_four: str | None = None) -> dict:
    """Customer-safe view. Raises ObjectNotFoundError, PhoneVerificationFailed."""
    cache_key = public_cache_key(awb)
    if not phone_last_four:
        try:
            cached = services.cache.get(cache_key)
        except Exception as exc:
            logger.warning("Tracking cache read failed", awb=awb, error=str(exc))
            cached = None
        if cached is not None:
            return cached

    shipment = current_domain.repository_for(Shipment).get_by_awb(awb)
    if phone_last_four and not shipment.phone_ends_with(phone_last_four):
        raise PhoneVerificationFailed(awb)

    now = services.now()
    rider_location = None
    if shipment.rider_id and shipment.status == ShipmentStatus.OUT_FOR_DELIVERY.value:
        latest = current_domain.repository_for(RiderLocation).latest_for_rider(str(shipment.rider_id))
        if latest is not None:
            rider_location = {**latest.as_point(), "accuracy": latest.accuracy, "is_online": latest.is_online}

    view = {
        "awb": shipment.awb,
        "status": shipment.status,
        "current_location": shipment.current_hub or "In Transit",
        "expected_delivery_date": _isoformat(shipment.expected_delivery_date),
        "actual_delivery_date": _isoformat(shipment.actual_delivery_date),
        "eta": estimate_eta(shipment, now),
        "receiver_name": shipment.receiver_name,
        "receiver_address": shipment.receiver_address,
        "delivery_area": shipment.delivery_area,
        "weight": shipment.weight,
        "delivery_type": shipment.delivery_type,
        "delivery_attempts": shipment.delivery_attempts,
        "is_rto": shipment.is_rto,
        "timeline": shipment_timeline(shipment, now),
        "rider_location": rider_location,
    }

    try:
        services.cache.set(cache_key, view, ttl_seconds=PUBLIC_TRACKING_TTL_SECONDS)
    except Exception as exc:
        logger.warning("Tracking cache write failed", awb=awb, error=str(exc))
    return view


def detailed_tracking(awb: str, services: Services, actor: Actor) -> dict:
    shipment = current_domain.repository_for(Shipment).get_by_awb(awb)
    # Riders see only the parcels they carry, merchants only their own
    owner = shipment.rider_id if actor.role == Role.RIDER else shipment.merchant_id
    ensure_permitted("tracking.detail", actor, owner_id=str(owner) if owner else None, awb=shipment.awb)

    now = services.now()
    trail = []
    if shipment.rider_id:
        samples = current_domain.repository_for(RiderLocation).trail(str(shipment.rider_id), limit=10)
        trail = [
            {**sample.as_point(), "accuracy": sample.accuracy, "speed": sample.speed, "heading": sample.heading}
            for sample in samples
        ]

    return {
        "id": str(shipment.id),
        "awb": shipment.awb,
        "status": shipment.status,
        "merchant_id": str(shipment.merchant_id),
        "receiver_name": shipment.receiver_name,
        "receiver_phone": shipment.receiver_phone,
        "receiver_address": shipment.receiver_address,
        "delivery_area": shipment.delivery_area,
        "weight": shipment.weight,
        "delivery_type": shipment.delivery_type,
        "payment_method": shipment.payment_method,
        "payment_status": shipment.payment_status,
        "cod_amount": shipment.cod_amount,
        "current_hub": shipment.current_hub,
        "next_hub": shipment.next_hub,
        "pickup_id": str(shipment.pickup_id) if shipment.pickup_id else None,
        "manifest_id": str(shipment.manifest_id) if shipment.manifest_id else None,
        "rider_id": str(shipment.rider_id) if shipment.rider_id else None,
        "expected_delivery_date": _isoformat(shipment.expected_delivery_date),
        "actual_delivery_date": _isoformat(shipment.actual_delivery_date),
        "created_at": _isoformat(shipment.created_at),
        "delivery_attempts": shipment.delivery_attempts,
        "failed_reason": shipment.failed_reason,
        "delivery_note": shipment.delivery_note,
        "is_rto": shipment.is_rto,
        "rto_reason": shipment.rto_reason,
        "signature_url": shipment.signature_url,
        "pod_photo_url": shipment.pod_photo_url,
        "eta": estimate_eta(shipment, now),
        "timeline": shipment_timeline(shipment, now),
        "rider_location": trail,
    }
