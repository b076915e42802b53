"""Fake real-time channel — records published messages for testing."""

from courier.realtime.port import RealtimePort


class FakeRealtime(RealtimePort):
    def __init__(self):
        self.messages: list[tuple[str, dict]] = []
        self.should_fail = False

    def configure(self, should_fail: bool = False):
        self.should_fail = should_fail

    def publish(self, topic: str, payload: dict) -> None:
        if self.should_fail:
            raise ConnectionError("Realtime gateway unavailable")
        self.messages.append((topic, payload))

    def on_topic(self, topic: str) -> list[dict]:
        return [payload for t, payload in self.messages if t == topic]

    def reset(self):
        self.messages.clear()
        self.should_fail = False
