"""Shared BDD fixtures and step definitions for courier scenarios."""

import pytest
from pytest_bdd import given, parsers, then, when

from courier.shared.errors import CodMismatch, InvalidStateTransition
from courier.shipment.status import UpdateShipmentStatus

HUB_STAFF = {"actor_id": "hub-staff-1", "actor_role": "hub_staff"}


@pytest.fixture()
def outcome():
    """Container for the error a When step captured, if any."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a shipment booked by "{merchant_id}"'), target_fixture="awb")
def _(ops, merchant_id):
    return ops.book(merchant_id=merchant_id, actor_id=merchant_id)


@given("the shipment has been picked up")
def _(ops, awb):
    ops.collect(awb)


@given(parsers.cfparse('the shipment is in hub "{hub}"'))
def _(ops, awb, hub):
    ops.inbound(hub, awb)


@given(parsers.cfparse('the shipment is out for delivery with "{rider_id}"'))
def _(ops, awb, rider_id):
    ops.collect(awb)
    ops.inbound("HUB-DHK", awb)
    ops.to_rider("HUB-DHK", awb, rider_id=rider_id)


@given(
    parsers.cfparse('a cash-on-delivery shipment for {amount:g} booked by "{merchant_id}"'), target_fixture="awb"
)
def _(ops, merchant_id, amount):
    return ops.book(merchant_id=merchant_id, actor_id=merchant_id, payment_method="cod", cod_amount=amount)


# ---------------------------------------------------------------------------
# When steps shared across features
# ---------------------------------------------------------------------------
@when("the rider requests a delivery OTP", target_fixture="otp")
def _(ops, awb):
    return ops.issue_otp(awb)


@when("hub staff send it out again")
def _(ops, awb):
    ops.process(UpdateShipmentStatus(awb=awb, status="out_for_delivery", occurred_at=ops.clock(), **HUB_STAFF))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the shipment status is "{status}"'))
def _(ops, awb, status):
    assert ops.shipment(awb).status == status


@then(parsers.cfparse('the shipment is located at "{hub}"'))
def _(ops, awb, hub):
    assert ops.shipment(awb).current_hub == hub


@then(parsers.cfparse("the shipment has {count:d} delivery attempt(s)"))
def _(ops, awb, count):
    assert ops.shipment(awb).delivery_attempts == count


@then("the shipment is flagged for return to origin")
def _(ops, awb):
    assert ops.shipment(awb).is_rto is True


@then("the move is refused as an invalid transition")
def _(outcome):
    assert isinstance(outcome["exc"], InvalidStateTransition)


@then("the delivery is refused for a cash mismatch")
def _(outcome):
    assert isinstance(outcome["exc"], CodMismatch)
