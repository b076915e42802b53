"""Audit log writer port."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime

from courier.utils.time import utcnow


@dataclass(frozen=True)
class AuditEntry:
    actor: str
    entity_type: str
    entity_id: str
    action: str
    before: dict | None = None
    after: dict | None = None
    description: str = ""
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


class AuditPort(ABC):
    @abstractmethod
    def write(self, entry: AuditEntry) -> None: ...
