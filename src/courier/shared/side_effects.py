"""Guard for side-channel calls (notifications, audit, cache, realtime).

A failing side channel is logged and swallowed; it never fails or rolls
back the state change that triggered it.
"""

from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def attempt(description: str, action: Callable[[], Any], **context) -> bool:
    try:
        action()
    except Exception as exc:
        logger.warning(f"{description} failed", error=str(exc), error_type=type(exc).__name__, **context)
        return False
    return True
