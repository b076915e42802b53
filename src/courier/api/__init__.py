"""Courier HTTP API package."""

from courier.api.errors import register_courier_exception_handlers
from courier.api.routes import (
    hub_router,
    manifest_router,
    pickup_router,
    rider_router,
    shipment_router,
    sla_router,
    tracking_router,
)

ROUTERS = (
    shipment_router,
    pickup_router,
    hub_router,
    manifest_router,
    rider_router,
    sla_router,
    tracking_router,
)

__all__ = ["ROUTERS", "register_courier_exception_handlers"]
