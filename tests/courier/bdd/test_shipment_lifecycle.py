"""BDD tests for the shipment lifecycle."""

from pytest_bdd import parsers, scenarios, then, when

from courier.shared.errors import CodMismatch, InvalidStateTransition
from courier.shipment.delivery import CompleteDelivery
from courier.shipment.status import UpdateShipmentStatus

scenarios("features/shipment_lifecycle.feature")

HUB_STAFF = {"actor_id": "hub-staff-1", "actor_role": "hub_staff"}


@when(parsers.cfparse('hub staff scan it in at "{hub}"'))
def _(ops, awb, hub):
    ops.inbound(hub, awb)


@when(parsers.cfparse('hub staff dispatch it on a manifest to "{destination}"'), target_fixture="manifest")
def _(ops, awb, destination):
    return ops.manifest("HUB-DHK", destination, awb)


@when("the rider delivers with the OTP the receiver was sent")
def _(ops, awb, otp):
    rider_id = str(ops.shipment(awb).rider_id)
    ops.process(CompleteDelivery(awb=awb, otp_code=otp, actor_id=rider_id, actor_role="rider"))


@when(parsers.cfparse('hub staff try to mark it "{status}"'))
def _(ops, awb, status, outcome):
    try:
        ops.process(UpdateShipmentStatus(awb=awb, status=status, next_hub="HUB-CTG", **HUB_STAFF))
    except InvalidStateTransition as exc:
        outcome["exc"] = exc


@then(parsers.cfparse('the manifest number is "{number}"'))
def _(manifest, number):
    assert manifest["manifest_number"] == number


@when(parsers.cfparse("the rider tries to deliver collecting {amount:g}"))
def _(ops, awb, otp, amount, outcome):
    try:
        ops.process(
            CompleteDelivery(awb=awb, otp_code=otp, cod_amount_collected=amount, actor_id="rider-1", actor_role="rider")
        )
    except CodMismatch as exc:
        outcome["exc"] = exc
