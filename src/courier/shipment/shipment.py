"""Shipment aggregate (CQRS) — the unit of work moving through the network.

The Shipment aggregate owns the authoritative status state machine. Every
component that moves a parcel (pickup completion, hub scans, manifests,
rider delivery actions, RTO escalation) goes through the methods below, so
an invalid move is rejected in exactly one place.

State Machine:
    PENDING → PICKUP_ASSIGNED → PICKED_UP → IN_HUB
    IN_HUB → {IN_HUB (sort), IN_TRANSIT, OUT_FOR_DELIVERY}
    IN_TRANSIT → IN_HUB                          (multi-hop cycle)
    OUT_FOR_DELIVERY → {DELIVERED, FAILED_DELIVERY, RTO_INITIATED}
    FAILED_DELIVERY → {OUT_FOR_DELIVERY, IN_HUB, RTO_INITIATED}
    RTO_INITIATED → RTO_IN_TRANSIT → RTO_DELIVERED
    any non-terminal state → CANCELLED
    any live state outside the return chain → RTO_INITIATED (manual return)
"""

from datetime import datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from courier.domain import courier
from courier.shared.authorization import SYSTEM_ACTOR
from courier.shared.errors import CodMismatch, InvalidOtp, InvalidStateTransition
from courier.shipment.events import (
    DeliveryAttemptFailed,
    DeliveryOtpIssued,
    ReturnToOriginInitiated,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentStatusChanged,
)
from courier.utils.time import as_utc, utcnow

MAX_DELIVERY_ATTEMPTS = 3
AUTO_RTO_REASON = f"Maximum delivery attempts ({MAX_DELIVERY_ATTEMPTS}) exceeded"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ShipmentStatus(Enum):
    PENDING = "pending"
    PICKUP_ASSIGNED = "pickup_assigned"
    PICKED_UP = "picked_up"
    IN_HUB = "in_hub"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY = "failed_delivery"
    RTO_INITIATED = "rto_initiated"
    RTO_IN_TRANSIT = "rto_in_transit"
    RTO_DELIVERED = "rto_delivered"
    CANCELLED = "cancelled"


class DeliveryType(Enum):
    NORMAL = "normal"
    EXPRESS = "express"


class PaymentMethod(Enum):
    COD = "cod"
    CASH = "cash"
    PREPAID = "prepaid"
    WALLET = "wallet"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_BANKING = "mobile_banking"


class PaymentStatus(Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    VERIFIED = "verified"
    PAID_OUT = "paid_out"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    ShipmentStatus.PENDING: {ShipmentStatus.PICKUP_ASSIGNED},
    ShipmentStatus.PICKUP_ASSIGNED: {ShipmentStatus.PICKED_UP},
    ShipmentStatus.PICKED_UP: {ShipmentStatus.IN_HUB},
    ShipmentStatus.IN_HUB: {
        ShipmentStatus.IN_HUB,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.OUT_FOR_DELIVERY,
    },
    ShipmentStatus.IN_TRANSIT: {ShipmentStatus.IN_HUB},
    ShipmentStatus.OUT_FOR_DELIVERY: {
        ShipmentStatus.DELIVERED,
        ShipmentStatus.FAILED_DELIVERY,
        ShipmentStatus.RTO_INITIATED,
    },
    ShipmentStatus.FAILED_DELIVERY: {
        ShipmentStatus.OUT_FOR_DELIVERY,
        ShipmentStatus.IN_HUB,
        ShipmentStatus.RTO_INITIATED,
    },
    ShipmentStatus.RTO_INITIATED: {ShipmentStatus.RTO_IN_TRANSIT},
    ShipmentStatus.RTO_IN_TRANSIT: {ShipmentStatus.RTO_DELIVERED},
    ShipmentStatus.DELIVERED: set(),  # terminal
    ShipmentStatus.RTO_DELIVERED: set(),  # terminal
    ShipmentStatus.CANCELLED: set(),  # terminal
}

TERMINAL_STATUSES = {
    ShipmentStatus.DELIVERED,
    ShipmentStatus.RTO_DELIVERED,
    ShipmentStatus.CANCELLED,
}

RTO_STATUSES = {
    ShipmentStatus.RTO_INITIATED,
    ShipmentStatus.RTO_IN_TRANSIT,
    ShipmentStatus.RTO_DELIVERED,
}

# Cancellation is an edge from every non-terminal state
for _status, _targets in _VALID_TRANSITIONS.items():
    if _status not in TERMINAL_STATUSES:
        _targets.add(ShipmentStatus.CANCELLED)

# Return to origin overrides the table from any live, not-yet-returning state
RTO_ALLOWED_FROM = {status for status in ShipmentStatus if status not in TERMINAL_STATUSES | RTO_STATUSES}

_DELIVERY_DAYS = {DeliveryType.EXPRESS.value: 1, DeliveryType.NORMAL.value: 3}


def can_transition(current: ShipmentStatus, target: ShipmentStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@courier.aggregate
class Shipment:
    awb = String(required=True, max_length=20, unique=True)
    merchant_id = Identifier(required=True)
    customer_id = Identifier()

    # Receiver
    receiver_name = String(max_length=200)
    receiver_phone = String(max_length=30)
    receiver_address = String(max_length=500)
    delivery_area = String(max_length=100)

    # Parcel
    weight = Float(default=0.0)
    delivery_type = String(choices=DeliveryType, default=DeliveryType.NORMAL.value)

    # Payment
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.PREPAID.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    cod_amount = Float(default=0.0)

    # Movement
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    current_hub = String(max_length=100)
    next_hub = String(max_length=100)
    rider_id = Identifier()
    pickup_id = Identifier()
    manifest_id = Identifier()

    # Delivery attempts and returns
    delivery_attempts = Integer(default=0, min_value=0)
    failed_reason = String(max_length=500)
    is_rto = Boolean(default=False)
    rto_reason = String(max_length=500)
    otp_code = String(max_length=6)

    # Proof of delivery
    signature_url = String(max_length=500)
    pod_photo_url = String(max_length=500)
    delivery_note = String(max_length=500)
    cancellation_reason = String(max_length=500)

    expected_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def rto_flag_matches_status(self):
        if self.is_rto and ShipmentStatus(self.status) not in RTO_STATUSES | {ShipmentStatus.CANCELLED}:
            raise ValidationError({"is_rto": ["Only shipments in a return-to-origin state can be flagged RTO"]})

    @invariant.post
    def delivered_shipments_carry_delivery_date(self):
        if self.status == ShipmentStatus.DELIVERED.value and self.actual_delivery_date is None:
            raise ValidationError({"actual_delivery_date": ["Delivered shipments must record when"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        awb: str,
        merchant_id: str,
        receiver_name: str | None = None,
        receiver_phone: str | None = None,
        receiver_address: str | None = None,
        delivery_area: str | None = None,
        customer_id: str | None = None,
        weight: float = 0.0,
        delivery_type: str = DeliveryType.NORMAL.value,
        payment_method: str = PaymentMethod.PREPAID.value,
        cod_amount: float = 0.0,
        expected_delivery_date: datetime | None = None,
        created_at: datetime | None = None,
    ):
        """Book a new shipment in PENDING."""
        now = created_at or utcnow()
        if expected_delivery_date is None:
            expected_delivery_date = now + timedelta(days=_DELIVERY_DAYS.get(delivery_type, 3))
        shipment = cls(
            awb=awb,
            merchant_id=merchant_id,
            customer_id=customer_id,
            receiver_name=receiver_name,
            receiver_phone=receiver_phone,
            receiver_address=receiver_address,
            delivery_area=delivery_area,
            weight=weight,
            delivery_type=delivery_type,
            payment_method=payment_method,
            cod_amount=cod_amount or 0.0,
            status=ShipmentStatus.PENDING.value,
            expected_delivery_date=expected_delivery_date,
            created_at=now,
            updated_at=now,
        )
        shipment.raise_(
            ShipmentCreated(
                shipment_id=str(shipment.id),
                awb=awb,
                merchant_id=str(merchant_id),
                delivery_type=delivery_type,
                payment_method=payment_method,
                cod_amount=shipment.cod_amount,
                created_at=now,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> ShipmentStatus:
        return ShipmentStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status in TERMINAL_STATUSES

    def _assert_can_transition(self, target_status: ShipmentStatus, allowed_from: set | None = None) -> None:
        if allowed_from is not None:
            permitted = self.current_status in allowed_from
        else:
            permitted = can_transition(self.current_status, target_status)
        if not permitted:
            raise InvalidStateTransition(self.status, target_status.value, identifier=self.awb)

    def _move(
        self,
        target_status: ShipmentStatus,
        at: datetime | None,
        actor_id: str,
        reason: str | None = None,
        allowed_from: set | None = None,
        **changes,
    ) -> datetime:
        """Apply a validated status change and its field side effects together."""
        self._assert_can_transition(target_status, allowed_from)
        now = at or utcnow()
        previous = self.status
        with atomic_change(self):
            for field_name, value in changes.items():
                setattr(self, field_name, value)
            self.status = target_status.value
            self.updated_at = now
        self.raise_(
            ShipmentStatusChanged(
                shipment_id=str(self.id),
                awb=self.awb,
                merchant_id=str(self.merchant_id),
                rider_id=str(self.rider_id) if self.rider_id else None,
                previous_status=previous,
                new_status=target_status.value,
                current_hub=self.current_hub,
                next_hub=self.next_hub,
                actor_id=actor_id,
                reason=reason,
                changed_at=now,
            )
        )
        return now

    # -------------------------------------------------------------------
    # Pickup
    # -------------------------------------------------------------------
    def assign_for_pickup(self, pickup_id: str, actor_id: str, at: datetime | None = None) -> None:
        self._move(ShipmentStatus.PICKUP_ASSIGNED, at, actor_id, pickup_id=pickup_id)

    def mark_picked_up(self, actor_id: str, at: datetime | None = None) -> None:
        self._move(ShipmentStatus.PICKED_UP, at, actor_id)

    def link_pickup(self, pickup_id: str | None) -> None:
        """Attach to a pickup, or detach with None, without moving status."""
        if self.current_status not in (ShipmentStatus.PENDING, ShipmentStatus.PICKUP_ASSIGNED):
            raise InvalidStateTransition(self.status, "pickup_linked", identifier=self.awb)
        self.pickup_id = pickup_id

    # -------------------------------------------------------------------
    # Hub movement
    # -------------------------------------------------------------------
    def receive_at_hub(
        self, hub: str, actor_id: str, manifest_id: str | None = None, at: datetime | None = None
    ) -> None:
        """Arrival scan at ``hub``; clears the onward routing."""
        changes = {"current_hub": hub, "next_hub": None}
        if manifest_id:
            changes["manifest_id"] = manifest_id
        self._move(ShipmentStatus.IN_HUB, at, actor_id, **changes)

    def sort_to(self, next_hub: str, actor_id: str, at: datetime | None = None) -> None:
        self._move(ShipmentStatus.IN_HUB, at, actor_id, reason=f"Sorted for {next_hub}", next_hub=next_hub)

    def dispatch_to_hub(
        self, next_hub: str | None, actor_id: str, manifest_id: str | None = None, at: datetime | None = None
    ) -> None:
        changes = {"next_hub": next_hub}
        if manifest_id:
            changes["manifest_id"] = manifest_id
        self._move(ShipmentStatus.IN_TRANSIT, at, actor_id, **changes)

    def dispatch_to_rider(self, rider_id: str, actor_id: str, at: datetime | None = None) -> None:
        """Release to a rider for the last mile. A rider is mandatory."""
        if not rider_id:
            raise ValidationError({"rider_id": ["A rider is required to send a shipment out for delivery"]})
        self._move(ShipmentStatus.OUT_FOR_DELIVERY, at, actor_id, rider_id=rider_id, otp_code=None)

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def issue_otp(self, code: str, actor_id: str, at: datetime | None = None) -> None:
        """Store a fresh one-time code; it replaces any earlier one."""
        if self.current_status != ShipmentStatus.OUT_FOR_DELIVERY:
            raise InvalidStateTransition(self.status, "otp_issued", identifier=self.awb)
        now = at or utcnow()
        self.otp_code = code
        self.updated_at = now
        self.raise_(
            DeliveryOtpIssued(
                shipment_id=str(self.id),
                awb=self.awb,
                rider_id=str(self.rider_id),
                receiver_phone=self.receiver_phone,
                otp_code=code,
                issued_at=now,
            )
        )

    @property
    def cod_due(self) -> float:
        if self.payment_method == PaymentMethod.COD.value and (self.cod_amount or 0) > 0:
            return self.cod_amount
        return 0.0

    def complete_delivery(
        self,
        otp_code: str | None,
        actor_id: str,
        collected_amount: float | None = None,
        signature_url: str | None = None,
        pod_photo_url: str | None = None,
        delivery_note: str | None = None,
        at: datetime | None = None,
    ) -> None:
        """Deliver against a verified OTP and, for COD, the exact amount due."""
        self._assert_can_transition(ShipmentStatus.DELIVERED)
        if not self.otp_code:
            raise InvalidOtp(self.awb, "OTP not generated for this shipment")
        if otp_code != self.otp_code:
            raise InvalidOtp(self.awb, "Invalid OTP code")
        due = self.cod_due
        if due and (collected_amount is None or collected_amount != due):
            raise CodMismatch(self.awb, expected=due, collected=collected_amount)

        now = at or utcnow()
        changes = {
            "actual_delivery_date": now,
            "otp_code": None,
            "signature_url": signature_url or self.signature_url,
            "pod_photo_url": pod_photo_url or self.pod_photo_url,
            "delivery_note": delivery_note or self.delivery_note,
        }
        if self.payment_method == PaymentMethod.COD.value:
            changes["payment_status"] = PaymentStatus.COLLECTED.value
        self._move(ShipmentStatus.DELIVERED, now, actor_id, **changes)
        self.raise_(
            ShipmentDelivered(
                shipment_id=str(self.id),
                awb=self.awb,
                merchant_id=str(self.merchant_id),
                rider_id=str(self.rider_id),
                cod_collected=due,
                delivered_at=now,
            )
        )

    def record_failed_attempt(
        self, reason: str, actor_id: str, notes: str | None = None, at: datetime | None = None
    ) -> bool:
        """Count a failed attempt. Returns True when it escalated to RTO.

        Reaching the attempt limit moves the shipment straight to
        RTO_INITIATED in the same change as the counter increment, so no
        reader ever sees the limit reached while still FAILED_DELIVERY.
        """
        self._assert_can_transition(ShipmentStatus.FAILED_DELIVERY)
        now = at or utcnow()
        attempts = (self.delivery_attempts or 0) + 1
        failed_reason = f"{reason}: {notes}" if notes else reason
        escalate = attempts >= MAX_DELIVERY_ATTEMPTS

        if escalate:
            self._move(
                ShipmentStatus.RTO_INITIATED,
                now,
                SYSTEM_ACTOR.id,
                reason=AUTO_RTO_REASON,
                delivery_attempts=attempts,
                failed_reason=failed_reason,
                is_rto=True,
                rto_reason=AUTO_RTO_REASON,
            )
        else:
            self._move(
                ShipmentStatus.FAILED_DELIVERY,
                now,
                actor_id,
                reason=failed_reason,
                delivery_attempts=attempts,
                failed_reason=failed_reason,
            )

        self.raise_(
            DeliveryAttemptFailed(
                shipment_id=str(self.id),
                awb=self.awb,
                merchant_id=str(self.merchant_id),
                rider_id=str(self.rider_id) if self.rider_id else None,
                attempt_number=attempts,
                reason=failed_reason,
                failed_at=now,
            )
        )
        if escalate:
            self._raise_rto(AUTO_RTO_REASON, automatic=True, at=now)
        return escalate

    def initiate_rto(self, reason: str, actor_id: str, at: datetime | None = None) -> None:
        """Send the parcel back to the merchant from wherever it is.

        Unlike the other moves this ignores the transition table: any live
        status may be returned. Terminal and already-returning shipments refuse.
        """
        now = self._move(
            ShipmentStatus.RTO_INITIATED,
            at,
            actor_id,
            reason=reason,
            allowed_from=RTO_ALLOWED_FROM,
            is_rto=True,
            rto_reason=reason,
        )
        self._raise_rto(reason, automatic=False, at=now)

    def _raise_rto(self, reason: str, automatic: bool, at: datetime) -> None:
        self.raise_(
            ReturnToOriginInitiated(
                shipment_id=str(self.id),
                awb=self.awb,
                merchant_id=str(self.merchant_id),
                reason=reason,
                automatic=automatic,
                delivery_attempts=self.delivery_attempts,
                initiated_at=at,
            )
        )

    # -------------------------------------------------------------------
    # Returns and cancellation
    # -------------------------------------------------------------------
    def advance_return(self, target_status: ShipmentStatus, actor_id: str, at: datetime | None = None) -> None:
        if target_status not in (ShipmentStatus.RTO_IN_TRANSIT, ShipmentStatus.RTO_DELIVERED):
            raise InvalidStateTransition(self.status, target_status.value, identifier=self.awb)
        self._move(target_status, at, actor_id)

    def cancel(self, reason: str, actor_id: str, at: datetime | None = None) -> None:
        self._move(ShipmentStatus.CANCELLED, at, actor_id, reason=reason, cancellation_reason=reason)

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    def age(self, as_of: datetime) -> timedelta:
        return as_utc(as_of) - as_utc(self.created_at)

    def idle_for(self, as_of: datetime) -> timedelta:
        return as_utc(as_of) - as_utc(self.updated_at or self.created_at)

    def phone_ends_with(self, last_four: str) -> bool:
        digits = "".join(ch for ch in (self.receiver_phone or "") if ch.isdigit())
        return bool(last_four) and digits.endswith(last_four)
