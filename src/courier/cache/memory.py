"""In-process cache adapter with clock-driven TTL.

Expiry is evaluated lazily against the injected clock, so tests can move
time forward without sleeping.
"""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from courier.cache.port import CachePort
from courier.utils.time import utcnow


class MemoryCache(CachePort):
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self._entries: dict[str, tuple[Any, datetime | None]] = {}
        self._subscribers: dict[str, list[Callable[[Any], None]]] = {}
        self.published: list[dict] = []
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self.clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        expires_at = self.clock() + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def subscribe(self, channel: str, callback: Callable[[Any], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)

    def publish(self, channel: str, message: Any) -> int:
        with self._lock:
            self.published.append({"channel": channel, "message": message})
            subscribers = list(self._subscribers.get(channel, []))
        for callback in subscribers:
            callback(message)
        return len(subscribers)

    def ttl(self, key: str) -> float | None:
        """Seconds until expiry; None when absent or without TTL."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry[1] is None:
            return None
        return (entry[1] - self.clock()).total_seconds()

    def reset(self):
        """Clear entries, subscribers and the publish log (useful between tests)."""
        with self._lock:
            self._entries.clear()
            self._subscribers.clear()
            self.published.clear()
