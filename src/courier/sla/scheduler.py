"""Timer loop that drives ``SLAMonitor.sweep``.

``tick()`` runs one sweep and is what tests and the maintenance CLI call;
``run()`` repeats it every ``interval`` seconds until ``stop()``. The
sweep itself is blocking, so it runs in a worker thread and never holds
up the event loop it shares with the Engine.
"""

import asyncio
from datetime import datetime

import structlog

from courier.sla.monitor import SLAMonitor

logger = structlog.get_logger(__name__)


class SweepScheduler:
    def __init__(self, monitor: SLAMonitor, interval: float = 600):
        self.monitor = monitor
        self.interval = interval
        self.runs = 0
        self._stopped = asyncio.Event()

    def tick(self, as_of: datetime | None = None) -> dict:
        self.runs += 1
        return self.monitor.sweep(as_of)

    async def run(self) -> None:
        logger.info("SLA sweep loop started", interval=self.interval)
        while not self._stopped.is_set():
            try:
                await asyncio.to_thread(self.tick)
            except Exception as exc:
                logger.error("SLA sweep failed", error=str(exc), error_type=type(exc).__name__)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except TimeoutError:
                continue
        logger.info("SLA sweep loop stopped", runs=self.runs)

    def stop(self) -> None:
        self._stopped.set()
