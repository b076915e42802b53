"""Rider delivery actions — commands and handler.

OTP issuance, delivery completion (OTP and COD gate), failed attempts with
automatic return-to-origin, and manual RTO. Every command is scoped to the
rider the shipment is assigned to.
"""

import secrets

import structlog
from protean import handle
from protean.fields import DateTime, Float, String
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.rider.location_updates import record_location
from courier.shared.authorization import Actor, ensure_permitted
from courier.shipment.shipment import Shipment

logger = structlog.get_logger(__name__)


def generate_otp() -> str:
    """Six digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


@courier.command(part_of="Shipment")
class GenerateDeliveryOtp:
    awb = String(required=True, max_length=20)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class CompleteDelivery:
    awb = String(required=True, max_length=20)
    otp_code = String(required=True, max_length=6)
    cod_amount_collected = Float()
    signature_url = String(max_length=500)
    pod_photo_url = String(max_length=500)
    delivery_note = String(max_length=500)
    latitude = Float()
    longitude = Float()
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class RecordFailedDelivery:
    awb = String(required=True, max_length=20)
    reason = String(required=True, max_length=200)
    notes = String(max_length=300)
    photo_url = String(max_length=500)
    latitude = Float()
    longitude = Float()
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class MarkReturnToOrigin:
    awb = String(required=True, max_length=20)
    reason = String(required=True, max_length=200)
    notes = String(max_length=300)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command_handler(part_of=Shipment)
class DeliveryHandler:
    def _load_assigned(self, command, action):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get_by_awb(command.awb)
        ensure_permitted(
            action,
            Actor.of(command.actor_id, command.actor_role),
            owner_id=str(shipment.rider_id) if shipment.rider_id else None,
            awb=shipment.awb,
        )
        return repo, shipment

    @handle(GenerateDeliveryOtp)
    def generate_otp(self, command):
        repo, shipment = self._load_assigned(command, "delivery.otp")
        shipment.issue_otp(generate_otp(), command.actor_id, at=command.occurred_at)
        repo.add(shipment)
        return {"awb": shipment.awb, "otp_generated": True}

    @handle(CompleteDelivery)
    def complete_delivery(self, command):
        repo, shipment = self._load_assigned(command, "delivery.complete")
        shipment.complete_delivery(
            command.otp_code,
            command.actor_id,
            collected_amount=command.cod_amount_collected,
            signature_url=command.signature_url,
            pod_photo_url=command.pod_photo_url,
            delivery_note=command.delivery_note,
            at=command.occurred_at,
        )
        repo.add(shipment)
        _maybe_record_location(command, shipment)

        logger.info("Shipment delivered", awb=shipment.awb, rider_id=command.actor_id)
        return {
            "awb": shipment.awb,
            "delivered_at": shipment.actual_delivery_date,
            "cod_collected": command.cod_amount_collected or 0,
        }

    @handle(RecordFailedDelivery)
    def record_failed_delivery(self, command):
        repo, shipment = self._load_assigned(command, "delivery.fail")
        auto_rto = shipment.record_failed_attempt(
            command.reason,
            command.actor_id,
            notes=command.notes,
            at=command.occurred_at,
        )
        repo.add(shipment)
        _maybe_record_location(command, shipment)

        if auto_rto:
            logger.info(
                "Attempt limit reached, return to origin initiated",
                awb=shipment.awb,
                delivery_attempts=shipment.delivery_attempts,
            )
        return {
            "awb": shipment.awb,
            "delivery_attempts": shipment.delivery_attempts,
            "status": shipment.status,
            "auto_rto": auto_rto,
        }

    @handle(MarkReturnToOrigin)
    def mark_return_to_origin(self, command):
        repo, shipment = self._load_assigned(command, "delivery.rto")
        reason = f"{command.reason}: {command.notes}" if command.notes else command.reason
        shipment.initiate_rto(reason, command.actor_id, at=command.occurred_at)
        repo.add(shipment)
        return {"awb": shipment.awb, "status": shipment.status, "rto_reason": shipment.rto_reason}


def _maybe_record_location(command, shipment):
    if command.latitude is not None and command.longitude is not None:
        record_location(
            command.actor_id,
            command.latitude,
            command.longitude,
            shipment=shipment,
            recorded_at=command.occurred_at,
        )
