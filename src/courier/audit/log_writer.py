"""Audit writer backed by structlog; one JSON-able event per entry."""

import structlog

from courier.audit.port import AuditEntry, AuditPort


class LogAuditWriter(AuditPort):
    def __init__(self):
        self.logger = structlog.get_logger("courier.audit").bind(audit=True)

    def write(self, entry: AuditEntry) -> None:
        self.logger.info(entry.description or entry.action, **entry.to_dict())
