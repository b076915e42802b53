"""Queue an SLA violation for asynchronous processing — command and handler."""

from protean import handle
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.shipment.shipment import Shipment
from courier.sla.violation import SLAViolation


@courier.command(part_of="SLAViolation")
class RecordSLAViolation:
    shipment_id = Identifier(required=True)
    rule = String(required=True, max_length=20)
    threshold_hours = Float(required=True)
    elapsed_hours = Float(required=True)
    detected_at = DateTime(required=True)


@courier.command_handler(part_of=SLAViolation)
class RecordSLAViolationHandler:
    @handle(RecordSLAViolation)
    def record_violation(self, command):
        shipment = current_domain.repository_for(Shipment).get(command.shipment_id)
        violation = SLAViolation.record(
            shipment,
            rule=command.rule,
            threshold_hours=command.threshold_hours,
            elapsed_hours=command.elapsed_hours,
            detected_at=command.detected_at,
        )
        current_domain.repository_for(SLAViolation).add(violation)
        return str(violation.id)
