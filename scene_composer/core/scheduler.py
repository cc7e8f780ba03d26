"""Clock/executor abstraction for delays and deferred follow-ups.

Architectural role:
    Polling intervals, the progress-reset grace delay, and the deferred
    refinement start are all expressed against a `Scheduler` rather than
    calling `asyncio.sleep`/`loop.call_later` directly. Production code uses
    `AsyncioScheduler`; tests substitute a virtual clock.

Concurrency model:
    Single cooperative event loop. Every `sleep` and every scheduled follow-up
    is a suspension point, never a parallel thread.

Failure handling:
    Exceptions escaping a scheduled follow-up are logged, not re-raised, since
    follow-ups are fire-and-forget relative to whoever scheduled them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol


logger = logging.getLogger(__name__)

FollowUp = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    """Minimal timing interface required by the pipeline."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for `seconds`."""
        ...

    def call_later(self, delay: float, follow_up: FollowUp) -> None:
        """Run `follow_up()` once after `delay` seconds without blocking the caller."""
        ...


class AsyncioScheduler:
    """`Scheduler` backed by the running asyncio event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def call_later(self, delay: float, follow_up: FollowUp) -> None:
        task = asyncio.get_running_loop().create_task(self._run_later(delay, follow_up))
        # Keep a strong reference until the task finishes.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every scheduled follow-up (including chained ones) finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _run_later(self, delay: float, follow_up: FollowUp) -> None:
        await asyncio.sleep(delay)
        try:
            await follow_up()
        except Exception:
            logger.exception("Scheduled follow-up failed")
