"""OTP, COD settlement gate, failed attempts and return-to-origin escalation."""

from datetime import UTC, datetime

import pytest

from courier.shared.errors import CodMismatch, InvalidOtp, InvalidStateTransition
from courier.shipment.events import (
    DeliveryAttemptFailed,
    DeliveryOtpIssued,
    ReturnToOriginInitiated,
    ShipmentDelivered,
    ShipmentStatusChanged,
)
from courier.shipment.shipment import AUTO_RTO_REASON, Shipment, ShipmentStatus

NOW = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


def _out_for_delivery(**overrides):
    fields = {
        "awb": "FX20240304000002",
        "merchant_id": "merchant-1",
        "receiver_phone": "+8801712345678",
        "created_at": NOW,
    }
    fields.update(overrides)
    shipment = Shipment.create(**fields)
    shipment.assign_for_pickup("pickup-1", "hub-staff-1", at=NOW)
    shipment.mark_picked_up("rider-9", at=NOW)
    shipment.receive_at_hub("HUB-DHK", "hub-staff-1", at=NOW)
    shipment.dispatch_to_rider("rider-1", "hub-staff-1", at=NOW)
    shipment._events.clear()
    return shipment


class TestOtp:
    def test_issue_requires_out_for_delivery(self):
        shipment = Shipment.create(awb="FX20240304000003", merchant_id="merchant-1", created_at=NOW)
        with pytest.raises(InvalidStateTransition):
            shipment.issue_otp("123456", "rider-1", at=NOW)
        assert shipment.otp_code is None

    def test_new_code_replaces_old(self):
        shipment = _out_for_delivery()
        shipment.issue_otp("111111", "rider-1", at=NOW)
        shipment.issue_otp("222222", "rider-1", at=NOW)
        assert shipment.otp_code == "222222"
        issued = [e for e in shipment._events if isinstance(e, DeliveryOtpIssued)]
        assert [e.otp_code for e in issued] == ["111111", "222222"]

    def test_delivery_without_otp_is_rejected(self):
        shipment = _out_for_delivery()
        with pytest.raises(InvalidOtp) as exc:
            shipment.complete_delivery("123456", "rider-1", at=NOW)
        assert exc.value.messages["otp"] == ["OTP not generated for this shipment"]
        assert shipment.status == ShipmentStatus.OUT_FOR_DELIVERY.value

    def test_wrong_otp_is_rejected(self):
        shipment = _out_for_delivery()
        shipment.issue_otp("123456", "rider-1", at=NOW)
        with pytest.raises(InvalidOtp):
            shipment.complete_delivery("654321", "rider-1", at=NOW)
        assert shipment.otp_code == "123456"
        assert shipment.actual_delivery_date is None


class TestCompletion:
    def test_prepaid_delivery(self):
        shipment = _out_for_delivery()
        shipment.issue_otp("123456", "rider-1", at=NOW)
        shipment.complete_delivery("123456", "rider-1", pod_photo_url="https://cdn/pod.jpg", at=NOW)

        assert shipment.status == ShipmentStatus.DELIVERED.value
        assert shipment.actual_delivery_date == NOW
        assert shipment.otp_code is None
        assert shipment.pod_photo_url == "https://cdn/pod.jpg"
        assert shipment.payment_status == "pending"
        assert any(isinstance(e, ShipmentDelivered) for e in shipment._events)

    def test_cod_exact_amount_marks_payment_collected(self):
        shipment = _out_for_delivery(payment_method="cod", cod_amount=1250.0)
        shipment.issue_otp("123456", "rider-1", at=NOW)
        shipment.complete_delivery("123456", "rider-1", collected_amount=1250.0, at=NOW)
        assert shipment.status == ShipmentStatus.DELIVERED.value
        assert shipment.payment_status == "collected"

    @pytest.mark.parametrize("collected", [None, 0.0, 1249.99, 1250.01, 1300.0])
    def test_cod_mismatch_is_rejected(self, collected):
        shipment = _out_for_delivery(payment_method="cod", cod_amount=1250.0)
        shipment.issue_otp("123456", "rider-1", at=NOW)
        with pytest.raises(CodMismatch) as exc:
            shipment.complete_delivery("123456", "rider-1", collected_amount=collected, at=NOW)
        assert exc.value.expected == 1250.0
        assert exc.value.collected == collected
        assert shipment.status == ShipmentStatus.OUT_FOR_DELIVERY.value

    def test_cod_with_nothing_due_needs_no_amount(self):
        shipment = _out_for_delivery(payment_method="cod", cod_amount=0.0)
        shipment.issue_otp("123456", "rider-1", at=NOW)
        shipment.complete_delivery("123456", "rider-1", at=NOW)
        assert shipment.status == ShipmentStatus.DELIVERED.value


class TestFailedAttempts:
    def test_each_failure_counts_once(self):
        shipment = _out_for_delivery()
        escalated = shipment.record_failed_attempt("Customer not available", "rider-1", notes="Door locked", at=NOW)

        assert escalated is False
        assert shipment.delivery_attempts == 1
        assert shipment.status == ShipmentStatus.FAILED_DELIVERY.value
        assert shipment.failed_reason == "Customer not available: Door locked"
        event = next(e for e in shipment._events if isinstance(e, DeliveryAttemptFailed))
        assert event.attempt_number == 1

    def test_third_failure_escalates_in_the_same_change(self):
        shipment = _out_for_delivery()
        for _ in range(2):
            shipment.record_failed_attempt("Customer not available", "rider-1", at=NOW)
            shipment.dispatch_to_rider("rider-1", "hub-staff-1", at=NOW)

        escalated = shipment.record_failed_attempt("Wrong address", "rider-1", at=NOW)

        assert escalated is True
        assert shipment.delivery_attempts == 3
        assert shipment.status == ShipmentStatus.RTO_INITIATED.value
        assert shipment.is_rto is True
        assert shipment.rto_reason == AUTO_RTO_REASON
        assert shipment.failed_reason == "Wrong address"

        rto = [e for e in shipment._events if isinstance(e, ReturnToOriginInitiated)]
        assert len(rto) == 1
        assert rto[0].automatic is True

    def test_auto_escalation_is_attributed_to_system(self):
        shipment = _out_for_delivery()
        shipment.delivery_attempts = 2
        shipment.record_failed_attempt("Refused", "rider-1", at=NOW)
        change = [e for e in shipment._events if isinstance(e, ShipmentStatusChanged)][-1]
        assert change.actor_id == "system"
        assert change.new_status == ShipmentStatus.RTO_INITIATED.value

    def test_failure_only_from_out_for_delivery(self):
        shipment = _out_for_delivery()
        shipment.record_failed_attempt("Customer not available", "rider-1", at=NOW)
        with pytest.raises(InvalidStateTransition):
            shipment.record_failed_attempt("Again", "rider-1", at=NOW)
        assert shipment.delivery_attempts == 1


class TestManualReturn:
    def test_manual_rto_bypasses_counter(self):
        shipment = _out_for_delivery()
        shipment.initiate_rto("Customer refused parcel", "rider-1", at=NOW)
        assert shipment.status == ShipmentStatus.RTO_INITIATED.value
        assert shipment.is_rto is True
        assert shipment.delivery_attempts == 0
        rto = next(e for e in shipment._events if isinstance(e, ReturnToOriginInitiated))
        assert rto.automatic is False

    def test_return_runs_to_completion(self):
        shipment = _out_for_delivery()
        shipment.initiate_rto("Customer refused parcel", "rider-1", at=NOW)
        shipment.advance_return(ShipmentStatus.RTO_IN_TRANSIT, "hub-staff-1", at=NOW)
        shipment.advance_return(ShipmentStatus.RTO_DELIVERED, "hub-staff-1", at=NOW)
        assert shipment.is_terminal
        assert shipment.is_rto is True

    @pytest.mark.parametrize("route", ["in_hub", "in_transit"])
    def test_manual_rto_from_any_live_status(self, route):
        shipment = _out_for_delivery()
        shipment.record_failed_attempt("Customer not available", "rider-1", at=NOW)
        shipment.receive_at_hub("HUB-DHK", "hub-staff-1", at=NOW)
        if route == "in_transit":
            shipment.dispatch_to_hub("HUB-CTG", "hub-staff-1", at=NOW)

        shipment.initiate_rto("Merchant recalled parcel", "rider-1", at=NOW)

        assert shipment.status == ShipmentStatus.RTO_INITIATED.value
        assert shipment.is_rto is True

    def test_manual_rto_refused_once_delivered(self):
        shipment = _out_for_delivery()
        code = "482913"
        shipment.issue_otp(code, "rider-1", at=NOW)
        shipment.complete_delivery(code, "rider-1", at=NOW)
        with pytest.raises(InvalidStateTransition):
            shipment.initiate_rto("Too late", "rider-1", at=NOW)
        assert shipment.status == ShipmentStatus.DELIVERED.value

    def test_manual_rto_refused_while_already_returning(self):
        shipment = _out_for_delivery()
        shipment.initiate_rto("Customer refused parcel", "rider-1", at=NOW)
        shipment.advance_return(ShipmentStatus.RTO_IN_TRANSIT, "hub-staff-1", at=NOW)
        with pytest.raises(InvalidStateTransition) as exc:
            shipment.initiate_rto("Again", "rider-1", at=NOW)
        assert exc.value.current == "rto_in_transit"
