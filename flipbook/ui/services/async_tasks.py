"""Fire-and-forget coroutines from Qt slots on the QtAsyncio event loop."""

import asyncio
import logging
from typing import Coroutine, Set

logger = logging.getLogger(__name__)

# Strong references; the loop only keeps weak ones
_running: Set[asyncio.Task] = set()


def spawn(coro: Coroutine) -> asyncio.Task:
    """Schedule ``coro`` and log (rather than lose) any exception it raises."""
    task = asyncio.ensure_future(coro)
    _running.add(task)
    task.add_done_callback(_finished)
    return task


def _finished(task: asyncio.Task) -> None:
    _running.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Background task failed: {error!r}", exc_info=error)
