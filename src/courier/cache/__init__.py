"""Cache adapter registry.

Uses the in-memory cache by default; set COURIER_CACHE_ADAPTER=redis
(with REDIS_URL) in production.
"""

import os


def build_cache(adapter: str | None = None, clock=None):
    adapter = adapter or os.environ.get("COURIER_CACHE_ADAPTER", "memory")
    if adapter == "memory":
        from courier.cache.memory import MemoryCache

        return MemoryCache(clock) if clock else MemoryCache()
    elif adapter == "redis":
        from courier.cache.redis_adapter import RedisCache

        return RedisCache(os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
    else:
        raise ValueError(f"Unknown cache adapter: {adapter}")
