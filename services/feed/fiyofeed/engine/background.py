"""
Background feed refills.

A refill is speculative work: it is spawned as its own asyncio task, detached
from the request that triggered it, and its outcome is never awaited by that
request. Failures go to the log and a counter only.

Only one refill per (user, content type) is kept in flight; a second request
for the same key while one is running is a no-op.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Hashable

from fiyofeed.telemetry import BACKGROUND_REFILL_ERRORS_TOTAL

logger = logging.getLogger(__name__)


class BackgroundRefiller:
    def __init__(self) -> None:
        self._tasks: dict[Hashable, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, key: Hashable, job: Callable[[], Awaitable[object]]) -> bool:
        """Schedule `job()` unless a refill for `key` is already running."""
        if key in self._tasks:
            logger.debug("Refill already in flight for %s", key)
            return False

        task = asyncio.create_task(job(), name=f"feed-refill:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._finished(key, t))
        return True

    def _finished(self, key: Hashable, task: asyncio.Task) -> None:
        self._tasks.pop(key, None)
        if task.cancelled():
            logger.info("Background refill for %s was cancelled", key)
            return
        exc = task.exception()
        if exc is not None:
            BACKGROUND_REFILL_ERRORS_TOTAL.inc()
            logger.error(
                "Background refill for %s failed: %s",
                key,
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self) -> None:
        """Wait for every in-flight refill; used at shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
