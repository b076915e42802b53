"""Request-scoped dependencies: the acting user and the installed collaborators."""

from fastapi import Header, HTTPException, Request

from courier.services import Services
from courier.shared.authorization import Actor
from courier.sla.monitor import SLAMonitor


def get_actor(
    x_actor_id: str = Header(default="anonymous"),
    x_actor_role: str = Header(default="customer"),
) -> Actor:
    try:
        return Actor.of(x_actor_id, x_actor_role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown actor role: {x_actor_role}")


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_monitor(request: Request) -> SLAMonitor:
    return request.app.state.sla_monitor
