"""All-or-nothing batch loading for bulk shipment operations.

Every AWB in a request is loaded and checked before any shipment is
touched. A single unknown or ineligible AWB rejects the whole batch with a
reason per offending AWB.
"""

from collections.abc import Callable, Iterable

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from courier.shared.errors import BatchRejected
from courier.shipment.shipment import Shipment

NOT_FOUND = "not found"


def normalize_awbs(awbs: Iterable[str]) -> list[str]:
    """Strip blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for awb in awbs:
        awb = (awb or "").strip()
        if awb:
            seen.setdefault(awb, None)
    return list(seen)


def load_batch(
    awbs: Iterable[str],
    check: Callable[[Shipment], str | None],
    operation: str = "batch",
) -> list[Shipment]:
    """Return shipments in request order, or raise BatchRejected.

    ``check`` returns a reason string when a shipment is not eligible.
    """
    ordered = normalize_awbs(awbs)
    if not ordered:
        raise ValidationError({"awbs": ["At least one AWB is required"]})

    found = current_domain.repository_for(Shipment).find_by_awbs(ordered)
    offending: dict[str, str] = {}
    for awb in ordered:
        shipment = found.get(awb)
        if shipment is None:
            offending[awb] = NOT_FOUND
            continue
        reason = check(shipment)
        if reason:
            offending[awb] = reason

    if offending:
        raise BatchRejected(offending, operation=operation)
    return [found[awb] for awb in ordered]


def status_in(*statuses, hub: str | None = None) -> Callable[[Shipment], str | None]:
    """Eligibility check: status among ``statuses`` and, if given, located at ``hub``."""
    allowed = {s.value for s in statuses}

    def check(shipment: Shipment) -> str | None:
        if shipment.status not in allowed:
            return f"invalid status {shipment.status}"
        if hub is not None and shipment.current_hub != hub:
            return f"not at hub {hub} (at {shipment.current_hub or 'unknown'})"
        return None

    return check
