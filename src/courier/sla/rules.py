"""SLA rules — pure threshold evaluation against a shipment's own timestamps.

    pickup     PENDING, age since creation > 24h              suppress 24h
    delivery   PICKED_UP / IN_TRANSIT / OUT_FOR_DELIVERY,
               age since creation > 72h                      suppress 12h
    intransit  IN_TRANSIT, time since last update > 48h      suppress 12h
"""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from courier.shipment.shipment import Shipment, ShipmentStatus


class SLARuleKind(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    IN_TRANSIT = "intransit"


@dataclass(frozen=True)
class SLARule:
    kind: SLARuleKind
    statuses: frozenset[str]
    threshold: timedelta
    suppression: timedelta
    measure_idle: bool  # measure from last update rather than creation
    violation_label: str

    @property
    def threshold_hours(self) -> float:
        return self.threshold.total_seconds() / 3600

    def elapsed(self, shipment: Shipment, as_of: datetime) -> timedelta:
        return shipment.idle_for(as_of) if self.measure_idle else shipment.age(as_of)

    def applies_to(self, shipment: Shipment) -> bool:
        return shipment.status in self.statuses

    def is_violated_by(self, shipment: Shipment, as_of: datetime) -> bool:
        return self.applies_to(shipment) and self.elapsed(shipment, as_of) > self.threshold

    def marker_key(self, shipment_id: str) -> str:
        return f"sla:{self.kind.value}:{shipment_id}"


def default_rules(pickup_hours: float = 24, delivery_hours: float = 72, intransit_hours: float = 48) -> tuple:
    return (
        SLARule(
            kind=SLARuleKind.PICKUP,
            statuses=frozenset({ShipmentStatus.PENDING.value}),
            threshold=timedelta(hours=pickup_hours),
            suppression=timedelta(hours=24),
            measure_idle=False,
            violation_label="Pickup SLA exceeded",
        ),
        SLARule(
            kind=SLARuleKind.DELIVERY,
            statuses=frozenset(
                {
                    ShipmentStatus.PICKED_UP.value,
                    ShipmentStatus.IN_TRANSIT.value,
                    ShipmentStatus.OUT_FOR_DELIVERY.value,
                }
            ),
            threshold=timedelta(hours=delivery_hours),
            suppression=timedelta(hours=12),
            measure_idle=False,
            violation_label="Delivery SLA exceeded",
        ),
        SLARule(
            kind=SLARuleKind.IN_TRANSIT,
            statuses=frozenset({ShipmentStatus.IN_TRANSIT.value}),
            threshold=timedelta(hours=intransit_hours),
            suppression=timedelta(hours=12),
            measure_idle=True,
            violation_label="In-transit update SLA exceeded",
        ),
    )


def rules_from_env() -> tuple:
    return default_rules(
        pickup_hours=float(os.environ.get("COURIER_SLA_PICKUP_HOURS", 24)),
        delivery_hours=float(os.environ.get("COURIER_SLA_DELIVERY_HOURS", 72)),
        intransit_hours=float(os.environ.get("COURIER_SLA_INTRANSIT_HOURS", 48)),
    )


def rule_for(rules, kind: str) -> SLARule:
    for rule in rules:
        if rule.kind.value == kind:
            return rule
    raise KeyError(kind)


def evaluate(shipment: Shipment, rules, as_of: datetime) -> dict:
    """Check every rule against one shipment. No side effects."""
    violations = [rule.violation_label for rule in rules if rule.is_violated_by(shipment, as_of)]
    return {
        "is_violated": bool(violations),
        "violations": violations,
        "details": {
            "awb": shipment.awb,
            "status": shipment.status,
            "created_at": shipment.created_at.isoformat() if shipment.created_at else None,
            "updated_at": shipment.updated_at.isoformat() if shipment.updated_at else None,
            "checked_at": as_of.isoformat(),
            **{f"{rule.kind.value}_sla_hours": rule.threshold_hours for rule in rules},
        },
    }
