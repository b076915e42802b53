"""Pickup lifecycle — commands and handler.

A merchant requests a pickup for some of their pending shipments, hub
staff assign an agent, and the agent completes the pickup by scanning the
parcels actually handed over. Completion moves those shipments to
PICKED_UP.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.pickup.pickup import Pickup
from courier.shared.authorization import Actor, Role, ensure_permitted
from courier.shared.errors import NotAssigned
from courier.shipment.batch import load_batch
from courier.shipment.shipment import Shipment, ShipmentStatus
from courier.utils.time import utcnow

logger = structlog.get_logger(__name__)


@courier.command(part_of="Pickup")
class CreatePickup:
    merchant_id = Identifier(required=True)
    pickup_address = String(required=True, max_length=500)
    pickup_city = String(max_length=100)
    pickup_area = String(max_length=100)
    contact_person = String(max_length=200)
    contact_phone = String(max_length=30)
    scheduled_date = DateTime()
    notes = String(max_length=500)
    awbs = Text()  # JSON list of AWBs to collect
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Pickup")
class AssignPickup:
    pickup_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Pickup")
class StartPickup:
    pickup_id = Identifier(required=True)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Pickup")
class CompletePickup:
    pickup_id = Identifier(required=True)
    awbs = Text()  # JSON list of scanned AWBs; defaults to every linked shipment
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command(part_of="Pickup")
class CancelPickup:
    pickup_id = Identifier(required=True)
    reason = String(max_length=500)
    occurred_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


def _pickup_candidate(merchant_id: str, pickup_id: str | None = None):
    def check(shipment: Shipment) -> str | None:
        if str(shipment.merchant_id) != str(merchant_id):
            return "belongs to another merchant"
        status = shipment.current_status
        if status == ShipmentStatus.PENDING and shipment.pickup_id in (None, pickup_id):
            return None
        if status == ShipmentStatus.PICKUP_ASSIGNED and shipment.pickup_id in (None, pickup_id):
            return None
        if shipment.pickup_id and shipment.pickup_id != pickup_id:
            return "already linked to another pickup"
        return f"invalid status {shipment.status}"

    return check


@courier.command_handler(part_of=Pickup)
class PickupHandler:
    @handle(CreatePickup)
    def create_pickup(self, command):
        actor = Actor.of(command.actor_id, command.actor_role)
        ensure_permitted("pickup.manage", actor, owner_id=str(command.merchant_id))

        awbs = json.loads(command.awbs) if command.awbs else []
        shipments = load_batch(awbs, _pickup_candidate(command.merchant_id), "create_pickup") if awbs else []

        pickup = Pickup.request(
            merchant_id=command.merchant_id,
            pickup_address=command.pickup_address,
            pickup_city=command.pickup_city,
            pickup_area=command.pickup_area,
            contact_person=command.contact_person,
            contact_phone=command.contact_phone,
            scheduled_date=command.scheduled_date,
            notes=command.notes,
            created_at=command.occurred_at,
        )
        pickup.total_shipments = len(shipments)
        current_domain.repository_for(Pickup).add(pickup)

        shipment_repo = current_domain.repository_for(Shipment)
        for shipment in shipments:
            shipment.link_pickup(str(pickup.id))
            shipment_repo.add(shipment)
        return str(pickup.id)

    @handle(AssignPickup)
    def assign_pickup(self, command):
        repo = current_domain.repository_for(Pickup)
        pickup = repo.get(command.pickup_id)
        ensure_permitted("pickup.manage", Actor.of(command.actor_id, command.actor_role), owner_id=str(pickup.merchant_id))

        pickup.assign(command.agent_id, at=command.occurred_at)
        repo.add(pickup)

        shipment_repo = current_domain.repository_for(Shipment)
        for shipment in shipment_repo.for_pickup(str(pickup.id)):
            if shipment.current_status == ShipmentStatus.PENDING:
                shipment.assign_for_pickup(str(pickup.id), command.actor_id, at=pickup.assigned_at)
                shipment_repo.add(shipment)

    @handle(StartPickup)
    def start_pickup(self, command):
        actor = Actor.of(command.actor_id, command.actor_role)
        ensure_permitted("pickup.complete", actor)
        repo = current_domain.repository_for(Pickup)
        pickup = repo.get(command.pickup_id)
        _ensure_agent(pickup, actor)
        pickup.start(at=command.occurred_at)
        repo.add(pickup)

    @handle(CompletePickup)
    def complete_pickup(self, command):
        actor = Actor.of(command.actor_id, command.actor_role)
        ensure_permitted("pickup.complete", actor)
        repo = current_domain.repository_for(Pickup)
        pickup = repo.get(command.pickup_id)
        _ensure_agent(pickup, actor)

        shipment_repo = current_domain.repository_for(Shipment)
        linked = shipment_repo.for_pickup(str(pickup.id))
        awbs = json.loads(command.awbs) if command.awbs else [s.awb for s in linked]
        if not awbs:
            raise ValidationError({"awbs": ["No shipments to collect for this pickup"]})
        shipments = load_batch(awbs, _pickup_candidate(pickup.merchant_id, str(pickup.id)), "complete_pickup")

        now = command.occurred_at or utcnow()
        pickup.complete(len(shipments), at=now)
        repo.add(pickup)

        for shipment in shipments:
            if shipment.current_status == ShipmentStatus.PENDING:
                shipment.assign_for_pickup(str(pickup.id), command.actor_id, at=now)
            elif shipment.pickup_id != str(pickup.id):
                shipment.link_pickup(str(pickup.id))
            shipment.mark_picked_up(command.actor_id, at=now)
            shipment_repo.add(shipment)

        scanned = {s.awb for s in shipments}
        not_collected = [s.awb for s in linked if s.awb not in scanned]
        logger.info(
            "Pickup completed",
            pickup_id=str(pickup.id),
            collected=len(shipments),
            not_collected=len(not_collected),
        )
        return {"pickup_id": str(pickup.id), "collected": sorted(scanned), "not_collected": not_collected}

    @handle(CancelPickup)
    def cancel_pickup(self, command):
        repo = current_domain.repository_for(Pickup)
        pickup = repo.get(command.pickup_id)
        ensure_permitted("pickup.manage", Actor.of(command.actor_id, command.actor_role), owner_id=str(pickup.merchant_id))
        pickup.cancel(command.reason, at=command.occurred_at)
        repo.add(pickup)

        shipment_repo = current_domain.repository_for(Shipment)
        for shipment in shipment_repo.for_pickup(str(pickup.id)):
            if shipment.current_status in (ShipmentStatus.PENDING, ShipmentStatus.PICKUP_ASSIGNED):
                shipment.link_pickup(None)
                shipment_repo.add(shipment)


def _ensure_agent(pickup: Pickup, actor: Actor) -> None:
    if actor.role == Role.RIDER and str(pickup.agent_id) != actor.id:
        raise NotAssigned(str(pickup.id), actor.id, entity="Pickup")
