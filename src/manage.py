"""Courier management CLI.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py sweep [--as-of 2024-01-05T10:00:00+00:00]
"""

import argparse
import json
import os
import sys
from datetime import datetime


def _courier():
    from courier.domain import courier

    courier.init()
    return courier


def setup_database():
    from courier.utils.db import setup_db

    print("Creating courier database schema...")
    providers = setup_db(_courier())
    print(f"  schema ready ({', '.join(providers) or 'no relational provider'}).")


def drop_database():
    from courier.utils.db import drop_db

    print("Dropping courier database schema...")
    providers = drop_db(_courier())
    print(f"  schema dropped ({', '.join(providers) or 'no relational provider'}).")


def run_sweep(as_of: datetime | None = None) -> dict:
    """Run one SLA sweep with the collaborators configured in the environment."""
    from courier.services import Services, install
    from courier.sla.monitor import SLAMonitor

    domain = _courier()
    services = install(Services.from_env())
    monitor = SLAMonitor(domain, services, rule_timeout=float(os.environ.get("COURIER_SLA_RULE_TIMEOUT_SECONDS", 60)))
    report = monitor.sweep(as_of)
    print(json.dumps(report, indent=2))
    return report


def main():
    from courier.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Courier management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    sweep_parser = subparsers.add_parser("sweep", help="Run one SLA sweep now")
    sweep_parser.add_argument("--as-of", type=datetime.fromisoformat, help="Evaluate as of this ISO timestamp")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep":
        run_sweep(args.as_of)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
