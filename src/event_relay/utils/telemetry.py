"""
Module: telemetry.py
Description: Best-effort background writes.

Usage counters and last-used timestamps are non-authoritative
telemetry: they run as background tasks after the request has been
admitted, and a failure is logged at debug level and dropped.

Key Components:
- spawn_best_effort(): Schedule a coroutine whose failure is tolerated
"""

import asyncio
from typing import Awaitable, Set

from event_relay.utils.logger import get_logger

logger = get_logger(__name__)

# Strong references so pending tasks are not garbage collected
_pending: Set[asyncio.Task] = set()


async def _run(awaitable: Awaitable, name: str) -> None:
    try:
        await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(
            "Best-effort telemetry write failed",
            task=name,
            error=str(e),
            error_type=type(e).__name__
        )


def spawn_best_effort(awaitable: Awaitable, name: str) -> asyncio.Task:
    """
    Run a telemetry write in the background.

    Args:
        awaitable: Coroutine performing the write
        name: Label used in logs

    Returns:
        The scheduled task (callers normally ignore it)
    """
    task = asyncio.ensure_future(_run(awaitable, name))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
