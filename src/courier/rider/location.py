"""RiderLocation aggregate — append-only GPS samples from riders.

Samples are never mutated after insert. They feed read-side derivations
only: a rider's current position, a trail, and the out-for-delivery time
of the tracking timeline.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from courier.domain import courier
from courier.utils.time import utcnow


@courier.event(part_of="RiderLocation")
class RiderLocationRecorded:
    __version__ = 1

    location_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    shipment_id = Identifier()
    latitude = Float(required=True)
    longitude = Float(required=True)
    recorded_at = DateTime(required=True)


@courier.aggregate
class RiderLocation:
    rider_id = Identifier(required=True)
    shipment_id = Identifier()
    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)
    accuracy = Float()
    speed = Float()
    heading = Float()
    battery_level = Float()
    is_online = Boolean(default=True)
    address = String(max_length=500)
    recorded_at = DateTime(required=True)

    @classmethod
    def record(cls, rider_id, latitude, longitude, shipment_id=None, recorded_at=None, **extra):
        sample = cls(
            rider_id=rider_id,
            latitude=latitude,
            longitude=longitude,
            shipment_id=shipment_id,
            recorded_at=recorded_at or utcnow(),
            **extra,
        )
        sample.raise_(
            RiderLocationRecorded(
                location_id=str(sample.id),
                rider_id=str(rider_id),
                shipment_id=str(shipment_id) if shipment_id else None,
                latitude=latitude,
                longitude=longitude,
                recorded_at=sample.recorded_at,
            )
        )
        return sample

    def as_point(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }
