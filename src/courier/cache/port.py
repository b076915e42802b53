"""Key-value cache port — TTL entries plus topic publish.

Holds the SLA deduplication markers and the public tracking read-cache.
Expiry is best effort: adapters only promise an entry is gone some time
after its TTL.
"""

from abc import ABC, abstractmethod
from typing import Any


class CachePort(ABC):
    """Abstract interface for cache adapters."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when absent or expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def publish(self, channel: str, message: Any) -> int:
        """Broadcast ``message`` on ``channel``.

        Returns:
            the number of subscribers that received it
        """
        ...
