import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from courier.api import ROUTERS, register_courier_exception_handlers
from courier.domain import courier
from courier.sla.monitor import SLAMonitor
from courier.sla.rules import default_rules


@pytest.fixture()
def client(services):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with courier.domain_context():
            return await call_next(request)

    for router in ROUTERS:
        app.include_router(router)
    register_courier_exception_handlers(app)
    app.state.services = services
    app.state.sla_monitor = SLAMonitor(courier, services, rules=default_rules())
    return TestClient(app)


def headers(actor_id: str, role: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


@pytest.fixture()
def as_merchant():
    return headers("merchant-1", "merchant")


@pytest.fixture()
def as_hub_staff():
    return headers("hub-staff-1", "hub_staff")


@pytest.fixture()
def as_rider():
    return headers("rider-1", "rider")


@pytest.fixture()
def as_admin():
    return headers("admin-1", "admin")
