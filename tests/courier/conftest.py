import json
from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

from courier.hub.scanning import InboundScan, OutboundScan
from courier.manifest.dispatch import create_manifest
from courier.pickup.management import AssignPickup, CompletePickup, CreatePickup
from courier.services import Services, install, uninstall
from courier.shipment.creation import CreateShipment
from courier.shipment.delivery import GenerateDeliveryOtp, RecordFailedDelivery
from courier.shipment.shipment import Shipment

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture(scope="session")
def courier_bed():
    from courier.domain import courier
    from courier.utils.db import drop_db, setup_db

    bed = DomainFixture(courier)
    bed.setup()
    setup_db(courier)
    yield bed
    drop_db(courier)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(courier_bed):
    with courier_bed.domain_context():
        yield
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture(autouse=True)
def services(clock):
    installed = install(Services.fakes(clock))
    yield installed
    uninstall()


MERCHANT = ("merchant-1", "merchant")
HUB_STAFF = ("hub-staff-1", "hub_staff")
ADMIN = ("admin-1", "admin")
RIDER = ("rider-1", "rider")
PICKUP_AGENT = ("rider-9", "rider")


def as_actor(actor) -> dict:
    return {"actor_id": actor[0], "actor_role": actor[1]}


class CourierOps:
    """Drives shipments through the real command handlers at the test clock's time."""

    def __init__(self, clock: FrozenClock):
        self.clock = clock

    def process(self, command):
        return current_domain.process(command, asynchronous=False)

    def shipment(self, awb: str):
        return current_domain.repository_for(Shipment).get_by_awb(awb)

    def book(self, **overrides) -> str:
        fields = {
            "merchant_id": MERCHANT[0],
            "receiver_name": "Nadia Rahman",
            "receiver_phone": "+8801712345678",
            "receiver_address": "House 12, Road 5, Dhanmondi",
            "delivery_area": "Dhanmondi",
            "weight": 1.2,
            "created_at": self.clock(),
            **as_actor(MERCHANT),
        }
        fields.update(overrides)
        return self.process(CreateShipment(**fields))

    def collect(self, *awbs: str) -> str:
        """Request, assign and complete a pickup for ``awbs``. Returns the pickup id."""
        pickup_id = self.process(
            CreatePickup(
                merchant_id=MERCHANT[0],
                pickup_address="Warehouse 3, Tejgaon",
                awbs=json.dumps(list(awbs)),
                occurred_at=self.clock(),
                **as_actor(MERCHANT),
            )
        )
        self.process(
            AssignPickup(pickup_id=pickup_id, agent_id=PICKUP_AGENT[0], occurred_at=self.clock(), **as_actor(HUB_STAFF))
        )
        self.process(CompletePickup(pickup_id=pickup_id, occurred_at=self.clock(), **as_actor(PICKUP_AGENT)))
        return pickup_id

    def inbound(self, hub: str, *awbs: str, manifest_id: str | None = None) -> dict:
        return self.process(
            InboundScan(
                hub=hub,
                awbs=json.dumps(list(awbs)),
                manifest_id=manifest_id,
                occurred_at=self.clock(),
                **as_actor(HUB_STAFF),
            )
        )

    def to_rider(self, hub: str, *awbs: str, rider_id: str = RIDER[0]) -> dict:
        return self.process(
            OutboundScan(
                hub=hub, awbs=json.dumps(list(awbs)), rider_id=rider_id, occurred_at=self.clock(), **as_actor(HUB_STAFF)
            )
        )

    def manifest(self, origin: str, destination: str, *awbs: str) -> dict:
        return create_manifest(
            origin_hub=origin,
            destination_hub=destination,
            awbs=json.dumps(list(awbs)),
            occurred_at=self.clock(),
            **as_actor(HUB_STAFF),
        )

    def issue_otp(self, awb: str, rider=RIDER) -> str:
        self.process(GenerateDeliveryOtp(awb=awb, occurred_at=self.clock(), **as_actor(rider)))
        return self.shipment(awb).otp_code

    def fail_attempt(self, awb: str, reason: str = "Customer not available", rider=RIDER) -> dict:
        return self.process(RecordFailedDelivery(awb=awb, reason=reason, occurred_at=self.clock(), **as_actor(rider)))

    def booked_out_for_delivery(self, hub: str = "HUB-DHK", **overrides) -> str:
        awb = self.book(**overrides)
        self.collect(awb)
        self.inbound(hub, awb)
        self.to_rider(hub, awb)
        return awb


@pytest.fixture()
def ops(clock):
    return CourierOps(clock)
