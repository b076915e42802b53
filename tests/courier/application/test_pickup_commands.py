import json

import pytest
from protean.utils.globals import current_domain

from courier.pickup.management import AssignPickup, CancelPickup, CompletePickup, CreatePickup, StartPickup
from courier.pickup.pickup import Pickup
from courier.shared.errors import BatchRejected, InvalidStateTransition, NotAssigned, NotAuthorized

MERCHANT = {"actor_id": "merchant-1", "actor_role": "merchant"}
HUB_STAFF = {"actor_id": "hub-staff-1", "actor_role": "hub_staff"}
AGENT = {"actor_id": "rider-9", "actor_role": "rider"}


def _request(ops, *awbs, **fields):
    return ops.process(
        CreatePickup(
            merchant_id="merchant-1",
            pickup_address="Warehouse 3, Tejgaon",
            awbs=json.dumps(list(awbs)),
            occurred_at=ops.clock(),
            **{**MERCHANT, **fields},
        )
    )


def _pickup(pickup_id):
    return current_domain.repository_for(Pickup).get(pickup_id)


class TestRequest:
    def test_links_pending_shipments(self, ops):
        first, second = ops.book(), ops.book()
        pickup_id = _request(ops, first, second)

        assert _pickup(pickup_id).total_shipments == 2
        assert str(ops.shipment(first).pickup_id) == pickup_id
        assert ops.shipment(first).status == "pending"

    def test_rejects_foreign_shipments_as_a_batch(self, ops):
        mine = ops.book()
        theirs = ops.book(merchant_id="merchant-2", actor_id="merchant-2")
        with pytest.raises(BatchRejected) as exc:
            _request(ops, mine, theirs)
        assert exc.value.offending == {theirs: "belongs to another merchant"}
        assert ops.shipment(mine).pickup_id is None

    def test_merchant_cannot_request_for_another(self, ops):
        with pytest.raises(NotAuthorized):
            _request(ops, actor_id="merchant-2")


class TestAssignment:
    def test_moves_linked_shipments_to_pickup_assigned(self, ops, clock):
        awb = ops.book()
        pickup_id = _request(ops, awb)
        clock.advance(hours=1)
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-9", occurred_at=clock(), **HUB_STAFF))

        pickup = _pickup(pickup_id)
        assert pickup.status == "assigned"
        assert pickup.assigned_at == clock()
        assert ops.shipment(awb).status == "pickup_assigned"

    def test_reassignment_to_another_agent(self, ops):
        pickup_id = _request(ops, ops.book())
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-9", **HUB_STAFF))
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-7", **HUB_STAFF))
        assert str(_pickup(pickup_id).agent_id) == "rider-7"


class TestCompletion:
    def test_collects_linked_shipments(self, ops):
        awb = ops.book()
        pickup_id = ops.collect(awb)

        pickup = _pickup(pickup_id)
        assert pickup.status == "completed"
        assert pickup.total_shipments == 1
        assert ops.shipment(awb).status == "picked_up"

    def test_partial_collection_reports_leftovers(self, ops):
        taken, left = ops.book(), ops.book()
        pickup_id = _request(ops, taken, left)
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-9", **HUB_STAFF))
        ops.process(StartPickup(pickup_id=pickup_id, **AGENT))

        result = ops.process(CompletePickup(pickup_id=pickup_id, awbs=json.dumps([taken]), **AGENT))

        assert result["collected"] == [taken]
        assert result["not_collected"] == [left]
        assert ops.shipment(taken).status == "picked_up"
        assert ops.shipment(left).status == "pickup_assigned"

    def test_agent_may_add_unlinked_pending_shipment(self, ops):
        linked, extra = ops.book(), ops.book()
        pickup_id = _request(ops, linked)
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-9", **HUB_STAFF))
        ops.process(CompletePickup(pickup_id=pickup_id, awbs=json.dumps([linked, extra]), **AGENT))

        assert ops.shipment(extra).status == "picked_up"
        assert str(ops.shipment(extra).pickup_id) == pickup_id

    def test_only_the_assigned_agent(self, ops):
        pickup_id = _request(ops, ops.book())
        ops.process(AssignPickup(pickup_id=pickup_id, agent_id="rider-9", **HUB_STAFF))
        with pytest.raises(NotAssigned):
            ops.process(CompletePickup(pickup_id=pickup_id, actor_id="rider-3", actor_role="rider"))

    def test_cannot_complete_unassigned_pickup(self, ops):
        pickup_id = _request(ops, ops.book())
        with pytest.raises(InvalidStateTransition):
            ops.process(CompletePickup(pickup_id=pickup_id, **HUB_STAFF))


class TestCancellation:
    def test_releases_pending_shipments(self, ops):
        awb = ops.book()
        pickup_id = _request(ops, awb)
        ops.process(CancelPickup(pickup_id=pickup_id, reason="Shop closed", **MERCHANT))

        assert _pickup(pickup_id).status == "cancelled"
        assert ops.shipment(awb).pickup_id is None

    def test_completed_pickup_cannot_be_cancelled(self, ops):
        pickup_id = ops.collect(ops.book())
        with pytest.raises(InvalidStateTransition):
            ops.process(CancelPickup(pickup_id=pickup_id, **MERCHANT))
