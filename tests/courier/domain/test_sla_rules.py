from datetime import UTC, datetime, timedelta

import pytest
from protean import atomic_change

from courier.shipment.shipment import Shipment, ShipmentStatus
from courier.sla.rules import SLARuleKind, default_rules, evaluate, rule_for, rules_from_env

CREATED = datetime(2024, 3, 1, 8, 0, tzinfo=UTC)
RULES = default_rules()


def _shipment(status: ShipmentStatus, updated_at: datetime | None = None) -> Shipment:
    shipment = Shipment.create(awb="FX20240301000001", merchant_id="merchant-1", created_at=CREATED)
    with atomic_change(shipment):
        shipment.status = status.value
        shipment.updated_at = updated_at or CREATED
        if status == ShipmentStatus.DELIVERED:
            shipment.actual_delivery_date = CREATED
    return shipment


class TestThresholds:
    def test_pickup_is_strictly_greater_than(self):
        pickup = rule_for(RULES, "pickup")
        shipment = _shipment(ShipmentStatus.PENDING)
        assert not pickup.is_violated_by(shipment, CREATED + timedelta(hours=24))
        assert pickup.is_violated_by(shipment, CREATED + timedelta(hours=24, seconds=1))

    @pytest.mark.parametrize(
        "status",
        [ShipmentStatus.PICKED_UP, ShipmentStatus.IN_TRANSIT, ShipmentStatus.OUT_FOR_DELIVERY],
    )
    def test_delivery_applies_to_moving_shipments(self, status):
        delivery = rule_for(RULES, "delivery")
        assert delivery.is_violated_by(_shipment(status), CREATED + timedelta(hours=73))

    @pytest.mark.parametrize(
        "status",
        [ShipmentStatus.IN_HUB, ShipmentStatus.FAILED_DELIVERY, ShipmentStatus.DELIVERED, ShipmentStatus.PENDING],
    )
    def test_delivery_ignores_other_statuses(self, status):
        delivery = rule_for(RULES, "delivery")
        assert not delivery.is_violated_by(_shipment(status), CREATED + timedelta(days=30))

    def test_intransit_measures_from_last_update(self):
        intransit = rule_for(RULES, "intransit")
        touched = CREATED + timedelta(hours=40)
        shipment = _shipment(ShipmentStatus.IN_TRANSIT, updated_at=touched)
        assert not intransit.is_violated_by(shipment, touched + timedelta(hours=47))
        assert intransit.is_violated_by(shipment, touched + timedelta(hours=49))

    def test_suppression_windows(self):
        windows = {rule.kind: rule.suppression for rule in RULES}
        assert windows == {
            SLARuleKind.PICKUP: timedelta(hours=24),
            SLARuleKind.DELIVERY: timedelta(hours=12),
            SLARuleKind.IN_TRANSIT: timedelta(hours=12),
        }

    def test_marker_key_is_per_rule_and_shipment(self):
        assert rule_for(RULES, "delivery").marker_key("abc") == "sla:delivery:abc"

    def test_thresholds_from_environment(self, monkeypatch):
        monkeypatch.setenv("COURIER_SLA_PICKUP_HOURS", "6")
        assert rule_for(rules_from_env(), "pickup").threshold_hours == 6.0
        assert rule_for(rules_from_env(), "delivery").threshold_hours == 72.0


class TestEvaluate:
    def test_reports_every_violated_rule(self):
        shipment = _shipment(ShipmentStatus.IN_TRANSIT)
        result = evaluate(shipment, RULES, CREATED + timedelta(hours=80))
        assert result["is_violated"] is True
        assert result["violations"] == ["Delivery SLA exceeded", "In-transit update SLA exceeded"]
        assert result["details"]["delivery_sla_hours"] == 72.0
        assert result["details"]["status"] == "in_transit"

    def test_clean_shipment(self):
        result = evaluate(_shipment(ShipmentStatus.PENDING), RULES, CREATED + timedelta(hours=1))
        assert result == {
            "is_violated": False,
            "violations": [],
            "details": result["details"],
        }
        assert result["details"]["checked_at"] == (CREATED + timedelta(hours=1)).isoformat()
