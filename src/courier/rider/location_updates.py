"""Rider location updates — command and handler."""

from protean import handle
from protean.fields import Boolean, DateTime, Float, String
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.rider.location import RiderLocation
from courier.shared.authorization import Actor, ensure_permitted
from courier.shipment.shipment import Shipment


@courier.command(part_of="RiderLocation")
class RecordRiderLocation:
    latitude = Float(required=True)
    longitude = Float(required=True)
    shipment_awb = String(max_length=20)
    accuracy = Float()
    speed = Float()
    heading = Float()
    battery_level = Float()
    is_online = Boolean(default=True)
    recorded_at = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)


def record_location(rider_id: str, latitude: float, longitude: float, shipment=None, recorded_at=None, **extra):
    """Append a sample within the caller's unit of work."""
    sample = RiderLocation.record(
        rider_id=rider_id,
        latitude=latitude,
        longitude=longitude,
        shipment_id=str(shipment.id) if shipment is not None else None,
        recorded_at=recorded_at,
        **extra,
    )
    current_domain.repository_for(RiderLocation).add(sample)
    return sample


@courier.command_handler(part_of=RiderLocation)
class RiderLocationHandler:
    @handle(RecordRiderLocation)
    def record_rider_location(self, command):
        ensure_permitted("rider.location", Actor.of(command.actor_id, command.actor_role))

        shipment = None
        if command.shipment_awb:
            shipment = current_domain.repository_for(Shipment).get_by_awb(command.shipment_awb)

        sample = record_location(
            command.actor_id,
            command.latitude,
            command.longitude,
            shipment=shipment,
            recorded_at=command.recorded_at,
            accuracy=command.accuracy,
            speed=command.speed,
            heading=command.heading,
            battery_level=command.battery_level,
            is_online=command.is_online,
        )
        return str(sample.id)
