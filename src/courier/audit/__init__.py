"""Audit writer registry. Configure via COURIER_AUDIT_ADAPTER ("log" or "fake")."""

import os


def build_audit(adapter: str | None = None):
    adapter = adapter or os.environ.get("COURIER_AUDIT_ADAPTER", "log")
    if adapter == "log":
        from courier.audit.log_writer import LogAuditWriter

        return LogAuditWriter()
    elif adapter == "fake":
        from courier.audit.fake import FakeAuditLog

        return FakeAuditLog()
    else:
        raise ValueError(f"Unknown audit adapter: {adapter}")
