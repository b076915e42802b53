"""Redis cache adapter. Values are stored as JSON."""

import json
from typing import Any

import redis

from courier.cache.port import CachePort


class RedisCache(CachePort):
    def __init__(self, url: str, client: redis.Redis | None = None):
        self.url = url
        self.client = client or redis.Redis.from_url(url, decode_responses=True)

    def get(self, key: str) -> Any | None:
        raw = self.client.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        self.client.set(key, json.dumps(value, default=str), ex=ttl_seconds)

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def publish(self, channel: str, message: Any) -> int:
        payload = message if isinstance(message, str) else json.dumps(message, default=str)
        return self.client.publish(channel, payload)
