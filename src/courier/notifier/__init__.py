"""Notifier adapter registry.

Uses FakeNotifier by default. Configure via COURIER_NOTIFIER_ADAPTER
("fake" or "log").
"""

import os


def build_notifier(adapter: str | None = None):
    adapter = adapter or os.environ.get("COURIER_NOTIFIER_ADAPTER", "fake")
    if adapter == "fake":
        from courier.notifier.fake import FakeNotifier

        return FakeNotifier()
    elif adapter == "log":
        from courier.notifier.log_adapter import LogNotifier

        return LogNotifier()
    else:
        raise ValueError(f"Unknown notifier adapter: {adapter}")
