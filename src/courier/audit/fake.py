"""Fake audit log — keeps entries in memory for test assertions."""

from courier.audit.port import AuditEntry, AuditPort


class FakeAuditLog(AuditPort):
    def __init__(self):
        self.entries: list[AuditEntry] = []
        self.should_fail = False

    def configure(self, should_fail: bool = False):
        self.should_fail = should_fail

    def write(self, entry: AuditEntry) -> None:
        if self.should_fail:
            raise ConnectionError("Audit store unavailable")
        self.entries.append(entry)

    def for_entity(self, entity_id: str) -> list[AuditEntry]:
        return [e for e in self.entries if e.entity_id == entity_id]

    def reset(self):
        self.entries.clear()
        self.should_fail = False
