"""Process-wide collaborators, built once at startup and installed explicitly.

Request handlers and the SLA monitor receive a ``Services`` bundle; the
event handlers that run inside Protean's unit of work read the installed
bundle through ``current_services``. Nothing is built lazily on first use.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from courier.audit import build_audit
from courier.audit.port import AuditPort
from courier.cache import build_cache
from courier.cache.port import CachePort
from courier.notifier import build_notifier
from courier.notifier.port import NotifierPort
from courier.realtime import build_realtime
from courier.realtime.port import RealtimePort
from courier.utils.time import utcnow


@dataclass
class Services:
    cache: CachePort
    notifier: NotifierPort
    audit: AuditPort
    realtime: RealtimePort
    clock: Callable[[], datetime] = field(default=utcnow)

    @classmethod
    def from_env(cls) -> "Services":
        cache = build_cache()
        return cls(
            cache=cache,
            notifier=build_notifier(),
            audit=build_audit(),
            realtime=build_realtime(cache),
        )

    @classmethod
    def fakes(cls, clock: Callable[[], datetime] = utcnow) -> "Services":
        """In-memory collaborators that record what they were asked to do."""
        return cls(
            cache=build_cache("memory", clock=clock),
            notifier=build_notifier("fake"),
            audit=build_audit("fake"),
            realtime=build_realtime(None, "fake"),
            clock=clock,
        )

    def now(self) -> datetime:
        return self.clock()


_installed: Services | None = None


def install(services: Services) -> Services:
    global _installed
    _installed = services
    return services


def uninstall() -> None:
    global _installed
    _installed = None


def current_services() -> Services:
    if _installed is None:
        raise RuntimeError("Courier services are not installed; call courier.services.install() at startup")
    return _installed
