"""Shipment side effects — audit, cache invalidation, live updates, alerts.

Reacts to Shipment events after the state change is committed. Every call
into a collaborator goes through ``attempt`` so a broken side channel is
logged and the next one still runs.
"""

import structlog
from protean.utils.mixins import handle

from courier.audit.port import AuditEntry
from courier.domain import courier
from courier.notifier.port import NotificationChannel
from courier.services import current_services
from courier.shared.side_effects import attempt
from courier.shipment.events import (
    DeliveryAttemptFailed,
    DeliveryOtpIssued,
    ReturnToOriginInitiated,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentStatusChanged,
)
from courier.shipment.shipment import Shipment
from courier.tracking.keys import public_cache_key, status_topics

logger = structlog.get_logger(__name__)

SUPPORT_LINE = "1800-FASTX"


@courier.event_handler(part_of=Shipment)
class ShipmentSideEffects:
    @handle(ShipmentCreated)
    def on_shipment_created(self, event: ShipmentCreated) -> None:
        services = current_services()
        attempt(
            "Audit write",
            lambda: services.audit.write(
                AuditEntry(
                    actor=str(event.merchant_id),
                    entity_type="shipment",
                    entity_id=str(event.shipment_id),
                    action="created",
                    after={"awb": event.awb, "status": "pending"},
                    description=f"Shipment {event.awb} booked",
                    occurred_at=event.created_at,
                )
            ),
            awb=event.awb,
        )

    @handle(ShipmentStatusChanged)
    def on_status_changed(self, event: ShipmentStatusChanged) -> None:
        services = current_services()
        attempt(
            "Audit write",
            lambda: services.audit.write(
                AuditEntry(
                    actor=event.actor_id,
                    entity_type="shipment",
                    entity_id=str(event.shipment_id),
                    action="status_changed",
                    before={"status": event.previous_status},
                    after={
                        "status": event.new_status,
                        "current_hub": event.current_hub,
                        "next_hub": event.next_hub,
                    },
                    description=event.reason or f"{event.awb}: {event.previous_status} → {event.new_status}",
                    occurred_at=event.changed_at,
                )
            ),
            awb=event.awb,
        )
        attempt("Tracking cache invalidation", lambda: services.cache.delete(public_cache_key(event.awb)), awb=event.awb)

        payload = {
            "awb": event.awb,
            "status": event.new_status,
            "previous_status": event.previous_status,
            "current_hub": event.current_hub,
            "timestamp": event.changed_at.isoformat(),
        }
        for topic in status_topics(event.awb, str(event.merchant_id)):
            attempt("Realtime publish", lambda topic=topic: services.realtime.publish(topic, payload), topic=topic)

    @handle(DeliveryOtpIssued)
    def on_otp_issued(self, event: DeliveryOtpIssued) -> None:
        if not event.receiver_phone:
            logger.warning("No receiver phone for delivery OTP", awb=event.awb)
            return
        services = current_services()
        attempt(
            "Delivery OTP SMS",
            lambda: services.notifier.send(
                recipient=event.receiver_phone,
                channel=NotificationChannel.SMS.value,
                title="Delivery OTP",
                body=f"FastX: Your delivery OTP for {event.awb} is {event.otp_code}. "
                "Share with rider to confirm delivery.",
                data={"awb": event.awb},
            ),
            awb=event.awb,
        )

    @handle(ShipmentDelivered)
    def on_delivered(self, event: ShipmentDelivered) -> None:
        services = current_services()
        attempt(
            "Delivery confirmation",
            lambda: services.notifier.send(
                recipient=str(event.merchant_id),
                channel=NotificationChannel.EMAIL.value,
                title=f"Shipment {event.awb} delivered",
                body=f"Shipment {event.awb} was delivered at {event.delivered_at.isoformat()}.",
                data={"awb": event.awb, "cod_collected": event.cod_collected},
            ),
            awb=event.awb,
        )

    @handle(DeliveryAttemptFailed)
    def on_attempt_failed(self, event: DeliveryAttemptFailed) -> None:
        services = current_services()
        attempt(
            "Failed delivery alert",
            lambda: services.notifier.send(
                recipient=str(event.merchant_id),
                channel=NotificationChannel.EMAIL.value,
                title=f"Delivery attempt {event.attempt_number} failed for {event.awb}",
                body=f"Reason: {event.reason}. Contact: {SUPPORT_LINE}",
                data={"awb": event.awb, "attempt": event.attempt_number},
            ),
            awb=event.awb,
        )

    @handle(ReturnToOriginInitiated)
    def on_rto(self, event: ReturnToOriginInitiated) -> None:
        services = current_services()
        attempt(
            "RTO alert",
            lambda: services.notifier.send(
                recipient=str(event.merchant_id),
                channel=NotificationChannel.EMAIL.value,
                title=f"Shipment {event.awb} is returning to origin",
                body=event.reason,
                data={"awb": event.awb, "automatic": event.automatic},
            ),
            awb=event.awb,
        )
