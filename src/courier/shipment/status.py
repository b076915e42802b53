"""Operator status changes — commands and handler.

Moves a shipment along the state machine on behalf of hub staff or an
administrator. Delivery completion and RTO initiation have their own
commands because they carry extra checks and data; they are refused here.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.shared.authorization import Actor, ensure_permitted
from courier.shared.errors import InvalidStateTransition
from courier.shipment.shipment import Shipment, ShipmentStatus


@courier.command(part_of="Shipment")
class UpdateShipmentStatus:
    awb = String(required=True, max_length=20)
    status = String(required=True, choices=ShipmentStatus)
    hub = String(max_length=100)
    next_hub = String(max_length=100)
    rider_id = Identifier()
    reason = String(max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Shipment")
class CancelShipment:
    awb = String(required=True, max_length=20)
    reason = String(required=True, max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command_handler(part_of=Shipment)
class ShipmentStatusHandler:
    @handle(UpdateShipmentStatus)
    def update_status(self, command):
        ensure_permitted("shipment.update_status", Actor.of(command.actor_id, command.actor_role))

        repo = current_domain.repository_for(Shipment)
        shipment = repo.get_by_awb(command.awb)
        target = ShipmentStatus(command.status)
        at = command.occurred_at
        actor_id = command.actor_id

        if target == ShipmentStatus.PICKUP_ASSIGNED or target == ShipmentStatus.PICKED_UP:
            # Pickup states are owned by the pickup workflow
            raise InvalidStateTransition(shipment.status, target.value, identifier=shipment.awb)
        if target == ShipmentStatus.DELIVERED:
            raise InvalidStateTransition(shipment.status, target.value, identifier=shipment.awb)

        if target == ShipmentStatus.IN_HUB:
            hub = command.hub or shipment.current_hub
            if not hub:
                raise ValidationError({"hub": ["A hub is required to mark a shipment in hub"]})
            shipment.receive_at_hub(hub, actor_id, at=at)
        elif target == ShipmentStatus.IN_TRANSIT:
            shipment.dispatch_to_hub(command.next_hub or shipment.next_hub, actor_id, at=at)
        elif target == ShipmentStatus.OUT_FOR_DELIVERY:
            shipment.dispatch_to_rider(command.rider_id or shipment.rider_id, actor_id, at=at)
        elif target == ShipmentStatus.FAILED_DELIVERY:
            shipment.record_failed_attempt(command.reason or "Marked failed by operator", actor_id, at=at)
        elif target == ShipmentStatus.RTO_INITIATED:
            shipment.initiate_rto(command.reason or "Return initiated by operator", actor_id, at=at)
        elif target in (ShipmentStatus.RTO_IN_TRANSIT, ShipmentStatus.RTO_DELIVERED):
            shipment.advance_return(target, actor_id, at=at)
        elif target == ShipmentStatus.CANCELLED:
            shipment.cancel(command.reason or "Cancelled by operator", actor_id, at=at)
        else:
            raise InvalidStateTransition(shipment.status, target.value, identifier=shipment.awb)

        repo.add(shipment)
        return shipment.status

    @handle(CancelShipment)
    def cancel_shipment(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get_by_awb(command.awb)
        ensure_permitted(
            "shipment.cancel",
            Actor.of(command.actor_id, command.actor_role),
            owner_id=str(shipment.merchant_id),
        )
        shipment.cancel(command.reason, command.actor_id, at=command.occurred_at)
        repo.add(shipment)
