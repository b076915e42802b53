"""Real-time fan-out port — publish-by-topic for live subscribers."""

from abc import ABC, abstractmethod


class RealtimePort(ABC):
    @abstractmethod
    def publish(self, topic: str, payload: dict) -> None: ...
