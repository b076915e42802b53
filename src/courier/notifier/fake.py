"""Fake notifier — records notifications for testing."""

from uuid import uuid4

from courier.notifier.port import NotifierPort


class FakeNotifier(NotifierPort):
    """Notifier that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
        self.raise_on_send = False

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Notification delivery failed",
        raise_on_send: bool = False,
    ):
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_on_send = raise_on_send

    def send(self, recipient: str, channel: str, title: str, body: str, data: dict | None = None) -> dict:
        if self.raise_on_send:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "recipient": recipient,
                "channel": channel,
                "title": title,
                "body": body,
                "data": dict(data or {}),
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def sent_to(self, recipient: str) -> list[dict]:
        return [n for n in self.sent if n["recipient"] == recipient]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
        self.raise_on_send = False
