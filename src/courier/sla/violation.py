"""SLAViolation aggregate — the durable queue entry for one detected violation.

The sweep records a violation and moves on; the processing handler picks
it up from the ``SLAViolationRecorded`` event, writes the audit entry and
fans out notifications, then marks the record PROCESSED or FAILED.

State Machine:
    QUEUED → PROCESSED
    QUEUED → FAILED
"""

from datetime import datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, Integer, String

from courier.domain import courier
from courier.shared.errors import InvalidStateTransition
from courier.utils.time import utcnow


class ViolationStatus(Enum):
    QUEUED = "queued"
    PROCESSED = "processed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    ViolationStatus.QUEUED: {ViolationStatus.PROCESSED, ViolationStatus.FAILED},
    ViolationStatus.FAILED: set(),  # terminal
    ViolationStatus.PROCESSED: set(),  # terminal
}


@courier.event(part_of="SLAViolation")
class SLAViolationRecorded:
    __version__ = 1

    violation_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    awb = String(required=True)
    rule = String(required=True)
    shipment_status = String(required=True)
    merchant_id = Identifier()
    rider_id = Identifier()
    receiver_phone = String()
    threshold_hours = Float(required=True)
    elapsed_hours = Float(required=True)
    last_update = DateTime()
    detected_at = DateTime(required=True)


@courier.aggregate
class SLAViolation:
    shipment_id = Identifier(required=True)
    awb = String(required=True, max_length=20)
    rule = String(required=True, max_length=20)
    shipment_status = String(required=True, max_length=30)
    merchant_id = Identifier()
    rider_id = Identifier()
    receiver_phone = String(max_length=30)
    threshold_hours = Float(required=True)
    elapsed_hours = Float(required=True)
    last_update = DateTime()
    status = String(choices=ViolationStatus, default=ViolationStatus.QUEUED.value)
    attempts = Integer(default=0)
    failure_reason = String(max_length=500)
    detected_at = DateTime(required=True)
    processed_at = DateTime()

    @classmethod
    def record(cls, shipment, rule: str, threshold_hours: float, elapsed_hours: float, detected_at: datetime):
        violation = cls(
            shipment_id=str(shipment.id),
            awb=shipment.awb,
            rule=rule,
            shipment_status=shipment.status,
            merchant_id=str(shipment.merchant_id),
            rider_id=str(shipment.rider_id) if shipment.rider_id else None,
            receiver_phone=shipment.receiver_phone,
            threshold_hours=threshold_hours,
            elapsed_hours=round(elapsed_hours, 2),
            last_update=shipment.updated_at,
            detected_at=detected_at,
        )
        violation.raise_(
            SLAViolationRecorded(
                violation_id=str(violation.id),
                shipment_id=violation.shipment_id,
                awb=violation.awb,
                rule=rule,
                shipment_status=violation.shipment_status,
                merchant_id=violation.merchant_id,
                rider_id=violation.rider_id,
                receiver_phone=violation.receiver_phone,
                threshold_hours=threshold_hours,
                elapsed_hours=violation.elapsed_hours,
                last_update=violation.last_update,
                detected_at=detected_at,
            )
        )
        return violation

    def _assert_can_transition(self, target_status: ViolationStatus) -> None:
        current = ViolationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(current.value, target_status.value, entity="sla violation")

    def mark_processed(self, at: datetime | None = None) -> None:
        self._assert_can_transition(ViolationStatus.PROCESSED)
        self.status = ViolationStatus.PROCESSED.value
        self.attempts = (self.attempts or 0) + 1
        self.processed_at = at or utcnow()

    def mark_failed(self, reason: str, at: datetime | None = None) -> None:
        self._assert_can_transition(ViolationStatus.FAILED)
        self.status = ViolationStatus.FAILED.value
        self.attempts = (self.attempts or 0) + 1
        self.failure_reason = reason
        self.processed_at = at or utcnow()
