"""Manifest numbers: ``MF-YYYYMMDD-NNNN``, gapless within a calendar day.

The next number is derived from the greatest existing number carrying
today's prefix. That read-then-increment must not interleave with another
creation for the same day, so callers hold ``day_lock`` across the read
and the commit.
"""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

MANIFEST_PREFIX = "MF"

_registry_guard = threading.Lock()
_day_locks: dict[str, threading.Lock] = {}


def day_prefix(day: datetime) -> str:
    return f"{MANIFEST_PREFIX}-{day:%Y%m%d}-"


def next_manifest_number(existing: Iterable[str], day: datetime) -> str:
    prefix = day_prefix(day)
    matching = [number for number in existing if number and number.startswith(prefix)]
    if not matching:
        sequence = 1
    else:
        greatest = max(matching)
        sequence = int(greatest[len(prefix) :]) + 1
    return f"{prefix}{sequence:04d}"


@contextmanager
def day_lock(prefix: str) -> Iterator[None]:
    """Serialize number allocation for one day prefix within this process."""
    with _registry_guard:
        lock = _day_locks.setdefault(prefix, threading.Lock())
    with lock:
        yield
