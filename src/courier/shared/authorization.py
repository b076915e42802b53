"""Role-based permission checks for courier operations.

A pure function of (action, actor, owner): no transport, no lookups.
Handlers call ``ensure_permitted`` before touching any aggregate.
"""

from dataclasses import dataclass
from enum import Enum

from courier.shared.errors import NotAssigned, NotAuthorized


class Role(Enum):
    ADMIN = "admin"
    HUB_STAFF = "hub_staff"
    RIDER = "rider"
    MERCHANT = "merchant"
    CUSTOMER = "customer"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role

    @classmethod
    def of(cls, actor_id: str | None, role: str | None) -> "Actor":
        """Build an actor from the loose strings carried on commands."""
        return cls(id=actor_id or "anonymous", role=Role(role or Role.CUSTOMER.value))


SYSTEM_ACTOR = Actor(id="system", role=Role.SYSTEM)

_OPERATORS = {Role.ADMIN, Role.HUB_STAFF}

_PERMISSIONS: dict[str, set[Role]] = {
    "shipment.create": {Role.ADMIN, Role.MERCHANT},
    "shipment.update_status": _OPERATORS | {Role.SYSTEM},
    "shipment.cancel": {Role.ADMIN, Role.MERCHANT},
    "pickup.manage": _OPERATORS | {Role.MERCHANT},
    "pickup.complete": _OPERATORS | {Role.RIDER},
    "hub.scan": _OPERATORS,
    "hub.sort": _OPERATORS,
    "manifest.manage": _OPERATORS,
    "delivery.otp": {Role.RIDER},
    "delivery.complete": {Role.RIDER},
    "delivery.fail": {Role.RIDER},
    "delivery.rto": {Role.RIDER},
    "rider.location": {Role.RIDER},
    "rider.queue": {Role.RIDER},
    "hub.view": _OPERATORS | {Role.SYSTEM},
    "sla.inspect": _OPERATORS | {Role.SYSTEM},
    "sla.sweep": {Role.ADMIN, Role.SYSTEM},
    "tracking.detail": _OPERATORS | {Role.MERCHANT, Role.RIDER},
}

# Actions a rider may only perform on shipments assigned to them
_OWNED_BY_RIDER = {"delivery.otp", "delivery.complete", "delivery.fail", "delivery.rto", "tracking.detail"}

# Actions a merchant may only perform on their own shipments
_OWNED_BY_MERCHANT = {"shipment.cancel", "pickup.manage", "tracking.detail"}


def is_permitted(action: str, actor: Actor, owner_id: str | None = None) -> bool:
    """Return True if ``actor`` may perform ``action`` on an entity owned by ``owner_id``."""
    allowed = _PERMISSIONS.get(action)
    if allowed is None or actor.role not in allowed:
        return False
    if action in _OWNED_BY_RIDER and actor.role == Role.RIDER:
        return owner_id is not None and str(owner_id) == str(actor.id)
    if action in _OWNED_BY_MERCHANT and actor.role == Role.MERCHANT and owner_id is not None:
        return str(owner_id) == str(actor.id)
    return True


def ensure_permitted(action: str, actor: Actor, owner_id: str | None = None, awb: str | None = None) -> None:
    if is_permitted(action, actor, owner_id):
        return
    if action in _OWNED_BY_RIDER and actor.role == Role.RIDER:
        raise NotAssigned(awb or "", actor.id)
    raise NotAuthorized(action, actor.role.value)
