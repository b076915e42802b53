"""Rider read-side queries: assigned work and location."""

from protean.utils.globals import current_domain

from courier.manifest.manifest import Manifest
from courier.manifest.queries import manifest_summary
from courier.pickup.pickup import Pickup
from courier.rider.location import RiderLocation
from courier.shipment.shipment import Shipment


def rider_shipments(rider_id: str, status: str | None = None) -> list[dict]:
    shipments = current_domain.repository_for(Shipment).assigned_to_rider(rider_id, status)
    return [
        {
            "awb": s.awb,
            "status": s.status,
            "receiver_name": s.receiver_name,
            "receiver_phone": s.receiver_phone,
            "receiver_address": s.receiver_address,
            "delivery_area": s.delivery_area,
            "cod_amount": s.cod_due,
            "delivery_attempts": s.delivery_attempts,
        }
        for s in shipments
    ]


def rider_manifests(rider_id: str, status: str | None = None) -> list[dict]:
    return [manifest_summary(m) for m in current_domain.repository_for(Manifest).for_rider(rider_id, status)]


def rider_pickups(agent_id: str, status: str | None = None) -> list[dict]:
    return [
        {
            "id": str(p.id),
            "merchant_id": str(p.merchant_id),
            "status": p.status,
            "pickup_address": p.pickup_address,
            "scheduled_date": p.scheduled_date.isoformat() if p.scheduled_date else None,
            "total_shipments": p.total_shipments,
        }
        for p in current_domain.repository_for(Pickup).for_agent(agent_id, status)
    ]


def current_location(rider_id: str) -> dict | None:
    latest = current_domain.repository_for(RiderLocation).latest_for_rider(rider_id)
    return latest.as_point() if latest else None


def location_trail(rider_id: str, limit: int = 10) -> list[dict]:
    return [sample.as_point() for sample in current_domain.repository_for(RiderLocation).trail(rider_id, limit)]
