"""Hub inventory — read-side view of the parcels sitting in a hub."""

from collections import Counter

from protean.utils.globals import current_domain

from courier.shipment.shipment import DeliveryType, Shipment, ShipmentStatus


def hub_inventory(hub: str) -> dict:
    shipments = current_domain.repository_for(Shipment).at_hub(hub, ShipmentStatus.IN_HUB.value)

    by_destination = Counter(s.next_hub or s.delivery_area or "Unknown" for s in shipments)
    by_type = Counter(s.delivery_type for s in shipments)
    cod = [s for s in shipments if s.cod_due]

    return {
        "hub": hub,
        "total": len(shipments),
        "shipments": [
            {
                "awb": s.awb,
                "next_hub": s.next_hub,
                "delivery_area": s.delivery_area,
                "delivery_type": s.delivery_type,
                "cod_amount": s.cod_amount,
                "updated_at": s.updated_at.isoformat() if s.updated_at else None,
            }
            for s in sorted(shipments, key=lambda s: s.awb)
        ],
        "stats": {
            "by_destination": dict(by_destination),
            "by_type": {
                DeliveryType.EXPRESS.value: by_type.get(DeliveryType.EXPRESS.value, 0),
                DeliveryType.NORMAL.value: by_type.get(DeliveryType.NORMAL.value, 0),
            },
            "cod_shipments": len(cod),
            "total_cod_amount": sum(s.cod_amount for s in cod),
        },
    }
