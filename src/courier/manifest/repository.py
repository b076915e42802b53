"""Repository for the Manifest aggregate."""

from protean.exceptions import ObjectNotFoundError

from courier.domain import courier
from courier.manifest.manifest import Manifest
from courier.utils.query import fetch_all


@courier.repository(part_of=Manifest)
class ManifestRepository:
    def numbers_with_prefix(self, prefix: str) -> list[str]:
        manifests = fetch_all(self._dao.query.filter(manifest_number__contains=prefix))
        return [m.manifest_number for m in manifests if m.manifest_number.startswith(prefix)]

    def number_taken(self, manifest_number: str) -> bool:
        try:
            self._dao.find_by(manifest_number=manifest_number)
        except ObjectNotFoundError:
            return False
        return True

    def for_rider(self, rider_id: str, status: str | None = None) -> list[Manifest]:
        query = self._dao.query.filter(rider_id=rider_id)
        if status:
            query = query.filter(status=status)
        return fetch_all(query.order_by("-created_at"))

    def touching_hub(self, hub: str | None = None) -> list[Manifest]:
        """Manifests leaving or arriving at ``hub``; all manifests when None."""
        if hub is None:
            return fetch_all(self._dao.query)
        outgoing = fetch_all(self._dao.query.filter(origin_hub=hub))
        incoming = fetch_all(self._dao.query.filter(destination_hub=hub))
        seen = {m.id: m for m in outgoing}
        for manifest in incoming:
            seen.setdefault(manifest.id, manifest)
        return list(seen.values())
