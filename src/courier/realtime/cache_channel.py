"""Real-time channel that rides on the cache's publish (Redis pub/sub)."""

from courier.cache.port import CachePort
from courier.realtime.port import RealtimePort


class CacheChannel(RealtimePort):
    def __init__(self, cache: CachePort):
        self.cache = cache

    def publish(self, topic: str, payload: dict) -> None:
        self.cache.publish(topic, payload)
