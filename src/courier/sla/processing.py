"""SLA violation processing — audit entry plus stakeholder alerts.

Reacts to SLAViolationRecorded. The audit entry is always written; the
notifications depend on the rule:

    pickup     merchant email
    delivery   merchant email, customer SMS, rider push (when assigned)
    intransit  internal only

The violation record ends PROCESSED when every channel accepted its
message, FAILED otherwise.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from courier.audit.port import AuditEntry
from courier.domain import courier
from courier.fanout.shipment_events import SUPPORT_LINE
from courier.notifier.port import NotificationChannel
from courier.services import current_services
from courier.sla.rules import SLARuleKind
from courier.sla.violation import SLAViolation, SLAViolationRecorded, ViolationStatus

logger = structlog.get_logger(__name__)


def _format_hours(hours: float) -> str:
    return f"{hours:g}"


def violation_description(event: SLAViolationRecorded) -> str:
    hours = _format_hours(event.threshold_hours)
    if event.rule == SLARuleKind.PICKUP.value:
        return f"Pickup SLA of {hours} hours exceeded for shipment {event.awb}"
    if event.rule == SLARuleKind.DELIVERY.value:
        return (
            f"Delivery SLA of {hours} hours exceeded for shipment {event.awb}. "
            f"Current status: {event.shipment_status}"
        )
    last_update = event.last_update.isoformat() if event.last_update else "unknown"
    return f"In-transit update SLA of {hours} hours exceeded for shipment {event.awb}. Last update: {last_update}"


def violation_notifications(event: SLAViolationRecorded) -> list[dict]:
    """The messages owed for one violation, as notifier ``send`` kwargs."""
    hours = _format_hours(event.threshold_hours)
    data = {"awb": event.awb, "rule": event.rule, "shipment_id": str(event.shipment_id)}

    if event.rule == SLARuleKind.PICKUP.value:
        return [
            {
                "recipient": str(event.merchant_id),
                "channel": NotificationChannel.EMAIL.value,
                "title": "Pickup SLA Violation",
                "body": f"Shipment {event.awb} has not been picked up within {hours}h SLA. Please take action.",
                "data": data,
            }
        ]

    if event.rule == SLARuleKind.DELIVERY.value:
        days = _format_hours(round(event.threshold_hours / 24, 2))
        messages = [
            {
                "recipient": str(event.merchant_id),
                "channel": NotificationChannel.EMAIL.value,
                "title": "Delivery SLA Violation",
                "body": f"Shipment {event.awb} has exceeded the delivery SLA of {hours} hours ({days} days). "
                f"Current status: {event.shipment_status}",
                "data": data,
            }
        ]
        if event.receiver_phone:
            messages.append(
                {
                    "recipient": event.receiver_phone,
                    "channel": NotificationChannel.SMS.value,
                    "title": "Shipment delayed",
                    "body": f"Your shipment {event.awb} is delayed. We apologize for the inconvenience. "
                    f"For support, contact: {SUPPORT_LINE}",
                    "data": data,
                }
            )
        if event.rider_id:
            messages.append(
                {
                    "recipient": str(event.rider_id),
                    "channel": NotificationChannel.PUSH.value,
                    "title": "SLA Alert",
                    "body": f"Shipment {event.awb} has exceeded delivery SLA. Please prioritize.",
                    "data": data,
                }
            )
        return messages

    return []


@courier.event_handler(part_of=SLAViolation)
class SLAViolationProcessor:
    @handle(SLAViolationRecorded)
    def on_violation_recorded(self, event: SLAViolationRecorded) -> None:
        repo = current_domain.repository_for(SLAViolation)
        violation = repo.get(event.violation_id)

        if ViolationStatus(violation.status) != ViolationStatus.QUEUED:
            logger.info(
                "SLA violation already handled, skipping",
                violation_id=str(violation.id),
                status=violation.status,
            )
            return

        services = current_services()
        errors = []

        try:
            services.audit.write(
                AuditEntry(
                    actor="system",
                    entity_type="shipment",
                    entity_id=str(event.shipment_id),
                    action="sla_violation",
                    after={
                        "rule": event.rule,
                        "threshold_hours": event.threshold_hours,
                        "elapsed_hours": event.elapsed_hours,
                        "status": event.shipment_status,
                    },
                    description=violation_description(event),
                    occurred_at=event.detected_at,
                )
            )
        except Exception as exc:
            errors.append(f"audit: {exc}")

        for message in violation_notifications(event):
            try:
                result = services.notifier.send(**message)
            except Exception as exc:
                errors.append(f"{message['channel']}: {exc}")
                continue
            if result.get("status") != "sent":
                errors.append(f"{message['channel']}: {result.get('error', 'Unknown dispatch error')}")

        if errors:
            violation.mark_failed("; ".join(errors), at=services.now())
            logger.warning(
                "SLA violation processing incomplete",
                violation_id=str(violation.id),
                awb=event.awb,
                rule=event.rule,
                errors=errors,
            )
        else:
            violation.mark_processed(at=services.now())
            logger.info("SLA violation processed", awb=event.awb, rule=event.rule)

        repo.add(violation)
