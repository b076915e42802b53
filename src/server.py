"""Protean Engine runner for the courier domain, plus the SLA sweep loop.

Starts, in one event loop:
- the Engine: outbox processing and stream subscriptions, so the event
  handlers (audit, notifications, live updates, SLA processing) run
  asynchronously from the request path
- the SLA sweep timer, every COURIER_SLA_SWEEP_SECONDS

Usage:
    python src/server.py              # Engine and sweep loop
    python src/server.py --no-sweep   # Engine only
"""

import argparse
import asyncio
import os

from protean.server.engine import Engine

from courier.domain import courier
from courier.services import Services, install
from courier.sla.monitor import SLAMonitor
from courier.sla.scheduler import SweepScheduler
from courier.utils.logging import configure_logging


async def run(with_sweep: bool = True):
    courier.init()
    services = install(Services.from_env())

    tasks = [Engine(courier).run()]
    if with_sweep:
        monitor = SLAMonitor(
            courier,
            services,
            rule_timeout=float(os.environ.get("COURIER_SLA_RULE_TIMEOUT_SECONDS", 60)),
        )
        scheduler = SweepScheduler(monitor, interval=float(os.environ.get("COURIER_SLA_SWEEP_SECONDS", 600)))
        tasks.append(scheduler.run())

    await asyncio.gather(*tasks)


def main():
    configure_logging()

    parser = argparse.ArgumentParser(description="Courier Engine runner")
    parser.add_argument("--no-sweep", action="store_true", help="Do not run the SLA sweep loop")
    args = parser.parse_args()

    asyncio.run(run(with_sweep=not args.no_sweep))


if __name__ == "__main__":
    main()
