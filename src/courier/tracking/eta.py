"""Delivery ETA text for tracking views."""

import math
from datetime import datetime

from courier.shipment.shipment import ShipmentStatus
from courier.utils.time import as_utc

_FALLBACK_BY_STATUS = {
    ShipmentStatus.PENDING.value: "2-3 days",
    ShipmentStatus.PICKUP_ASSIGNED.value: "2-3 days",
    ShipmentStatus.PICKED_UP.value: "1-2 days",
    ShipmentStatus.IN_HUB.value: "1-2 days",
    ShipmentStatus.IN_TRANSIT.value: "12-24 hours",
    ShipmentStatus.OUT_FOR_DELIVERY.value: "2-4 hours",
}


def estimate_eta(shipment, now: datetime) -> str | None:
    """None once delivered or returning; otherwise hours/days left, or a range by status."""
    if shipment.actual_delivery_date or shipment.is_rto:
        return None

    expected = as_utc(shipment.expected_delivery_date)
    if expected and expected > now:
        hours = math.ceil((expected - now).total_seconds() / 3600)
        if hours <= 24:
            return f"{hours} hours"
        return f"{math.ceil(hours / 24)} days"

    return _FALLBACK_BY_STATUS.get(shipment.status)
