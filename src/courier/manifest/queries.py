"""Manifest read-side queries: filtered listing and status statistics."""

from datetime import datetime

from protean.utils.globals import current_domain

from courier.manifest.manifest import Manifest, ManifestStatus


def manifest_summary(manifest: Manifest) -> dict:
    return {
        "id": str(manifest.id),
        "manifest_number": manifest.manifest_number,
        "origin_hub": manifest.origin_hub,
        "destination_hub": manifest.destination_hub,
        "rider_id": str(manifest.rider_id) if manifest.rider_id else None,
        "status": manifest.status,
        "total_shipments": manifest.total_shipments,
        "dispatch_date": manifest.dispatch_date.isoformat() if manifest.dispatch_date else None,
        "received_date": manifest.received_date.isoformat() if manifest.received_date else None,
        "notes": manifest.notes,
    }


def list_manifests(
    status: str | None = None,
    origin_hub: str | None = None,
    destination_hub: str | None = None,
    rider_id: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Newest first, paged. Date bounds apply to the dispatch date."""
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    query = current_domain.repository_for(Manifest)._dao.query
    filters = {
        "status": status,
        "origin_hub": origin_hub,
        "destination_hub": destination_hub,
        "rider_id": rider_id,
        "dispatch_date__gte": from_date,
        "dispatch_date__lte": to_date,
        "manifest_number__contains": search,
    }
    criteria = {key: value for key, value in filters.items() if value is not None}
    if criteria:
        query = query.filter(**criteria)

    result = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [manifest_summary(m) for m in result.items],
        "total": result.total,
        "page": page,
        "limit": limit,
    }


def manifest_statistics(hub: str | None = None) -> dict:
    """Counts by status, optionally for manifests leaving or arriving at ``hub``."""
    manifests = current_domain.repository_for(Manifest).touching_hub(hub)
    by_status = {status.value: 0 for status in ManifestStatus}
    for manifest in manifests:
        by_status[manifest.status] += 1
    return {"hub": hub, "total": len(manifests), "by_status": by_status}
