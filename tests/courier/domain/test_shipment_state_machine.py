"""Shipment status transitions: allowed edges, rejected edges, side effects."""

from datetime import UTC, datetime

import pytest
from protean.exceptions import ValidationError

from courier.shared.errors import InvalidStateTransition
from courier.shipment.events import ShipmentCreated, ShipmentStatusChanged
from courier.shipment.shipment import (
    ShipmentStatus,
    Shipment,
    can_transition,
)

NOW = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


def _shipment(**overrides):
    fields = {
        "awb": "FX20240304000001",
        "merchant_id": "merchant-1",
        "receiver_name": "Nadia Rahman",
        "receiver_phone": "+8801712345678",
        "receiver_address": "House 12, Road 5",
        "created_at": NOW,
    }
    fields.update(overrides)
    return Shipment.create(**fields)


def _in_hub(hub="HUB-DHK"):
    shipment = _shipment()
    shipment.assign_for_pickup("pickup-1", "hub-staff-1", at=NOW)
    shipment.mark_picked_up("rider-9", at=NOW)
    shipment.receive_at_hub(hub, "hub-staff-1", at=NOW)
    shipment._events.clear()
    return shipment


class TestCreation:
    def test_new_shipment_is_pending(self):
        shipment = _shipment()
        assert shipment.status == ShipmentStatus.PENDING.value
        assert shipment.delivery_attempts == 0
        assert shipment.is_rto is False

    def test_created_event_is_raised(self):
        shipment = _shipment()
        assert any(isinstance(e, ShipmentCreated) for e in shipment._events)

    def test_normal_delivery_expected_in_three_days(self):
        shipment = _shipment()
        assert (shipment.expected_delivery_date - NOW).days == 3

    def test_express_delivery_expected_next_day(self):
        shipment = _shipment(delivery_type="express")
        assert (shipment.expected_delivery_date - NOW).days == 1


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,target",
        [
            (ShipmentStatus.PENDING, ShipmentStatus.PICKUP_ASSIGNED),
            (ShipmentStatus.PICKED_UP, ShipmentStatus.IN_HUB),
            (ShipmentStatus.IN_HUB, ShipmentStatus.IN_HUB),
            (ShipmentStatus.IN_HUB, ShipmentStatus.IN_TRANSIT),
            (ShipmentStatus.IN_TRANSIT, ShipmentStatus.IN_HUB),
            (ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.DELIVERED),
            (ShipmentStatus.FAILED_DELIVERY, ShipmentStatus.RTO_INITIATED),
            (ShipmentStatus.RTO_IN_TRANSIT, ShipmentStatus.RTO_DELIVERED),
            (ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (ShipmentStatus.PENDING, ShipmentStatus.IN_HUB),
            (ShipmentStatus.IN_TRANSIT, ShipmentStatus.OUT_FOR_DELIVERY),
            (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED),
            (ShipmentStatus.RTO_DELIVERED, ShipmentStatus.IN_HUB),
            (ShipmentStatus.CANCELLED, ShipmentStatus.PENDING),
            (ShipmentStatus.RTO_INITIATED, ShipmentStatus.DELIVERED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)


class TestMoves:
    def test_invalid_move_names_both_statuses_and_keeps_status(self):
        shipment = _shipment()
        with pytest.raises(InvalidStateTransition) as exc:
            shipment.receive_at_hub("HUB-DHK", "hub-staff-1", at=NOW)
        assert exc.value.current == "pending"
        assert exc.value.requested == "in_hub"
        assert shipment.status == ShipmentStatus.PENDING.value
        assert shipment.current_hub is None

    def test_hub_arrival_sets_current_hub_and_clears_next_hub(self):
        shipment = _in_hub()
        shipment.sort_to("HUB-CTG", "hub-staff-1", at=NOW)
        shipment.dispatch_to_hub("HUB-CTG", "hub-staff-1", at=NOW)
        shipment.receive_at_hub("HUB-CTG", "hub-staff-2", at=NOW)
        assert shipment.current_hub == "HUB-CTG"
        assert shipment.next_hub is None

    def test_multi_hop_cycle(self):
        shipment = _in_hub("HUB-A")
        for hub in ("HUB-B", "HUB-C", "HUB-D"):
            shipment.dispatch_to_hub(hub, "hub-staff-1", at=NOW)
            shipment.receive_at_hub(hub, "hub-staff-1", at=NOW)
        assert shipment.status == ShipmentStatus.IN_HUB.value
        assert shipment.current_hub == "HUB-D"

    def test_out_for_delivery_requires_rider(self):
        shipment = _in_hub()
        with pytest.raises(ValidationError):
            shipment.dispatch_to_rider(None, "hub-staff-1", at=NOW)
        assert shipment.status == ShipmentStatus.IN_HUB.value

    def test_status_change_event_carries_previous_and_new(self):
        shipment = _in_hub()
        shipment.dispatch_to_rider("rider-1", "hub-staff-1", at=NOW)
        event = [e for e in shipment._events if isinstance(e, ShipmentStatusChanged)][-1]
        assert event.previous_status == "in_hub"
        assert event.new_status == "out_for_delivery"
        assert event.rider_id == "rider-1"

    def test_cancel_from_non_terminal(self):
        shipment = _in_hub()
        shipment.cancel("Merchant request", "merchant-1", at=NOW)
        assert shipment.status == ShipmentStatus.CANCELLED.value
        assert shipment.cancellation_reason == "Merchant request"

    def test_cancelled_is_terminal(self):
        shipment = _shipment()
        shipment.cancel("Duplicate booking", "merchant-1", at=NOW)
        assert shipment.is_terminal
        with pytest.raises(InvalidStateTransition):
            shipment.cancel("Again", "merchant-1", at=NOW)

    def test_pickup_link_only_before_collection(self):
        shipment = _in_hub()
        with pytest.raises(InvalidStateTransition):
            shipment.link_pickup("pickup-2")
