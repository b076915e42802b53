"""Real-time channel registry. Configure via COURIER_REALTIME_ADAPTER ("cache" or "fake")."""

import os


def build_realtime(cache, adapter: str | None = None):
    adapter = adapter or os.environ.get("COURIER_REALTIME_ADAPTER", "cache")
    if adapter == "cache":
        from courier.realtime.cache_channel import CacheChannel

        return CacheChannel(cache)
    elif adapter == "fake":
        from courier.realtime.fake import FakeRealtime

        return FakeRealtime()
    else:
        raise ValueError(f"Unknown realtime adapter: {adapter}")
