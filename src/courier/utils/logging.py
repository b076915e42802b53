"""Logging configuration for the Courier domain."""

import logging
import os

import structlog

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


def configure_logging(env: str | None = None) -> None:
    """Render JSON lines in production and a readable console log elsewhere."""
    env = env or os.environ.get("PROTEAN_ENV", "development")
    renderer = structlog.processors.JSONRenderer() if env == "production" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        cache_logger_on_first_use=True,
    )
