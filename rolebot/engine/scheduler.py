"""
rolebot.engine.scheduler — Delayed Actions
===========================================

Runs a coroutine after a delay on the current event loop.  A scheduled
action may carry a :class:`CancellationToken`; without one it always fires.
The only way to stop token-less actions is :meth:`Scheduler.close`, which
is reserved for process shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancel flag checked right before a delayed action fires."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ScheduledTask:
    """Handle to one pending delayed action."""

    def __init__(self, name: str, task: asyncio.Task, token: CancellationToken | None) -> None:
        self.name = name
        self.token = token
        self._task = task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Cancel via the token.  Returns ``False`` if the task has none."""
        if self.token is None:
            return False
        self.token.cancel()
        return True

    async def wait(self) -> None:
        """Await completion (used by tests and shutdown)."""
        await asyncio.shield(self._task)


class Scheduler:
    """Owns every pending delayed action so shutdown can reap them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def schedule(
        self,
        delay: float,
        factory: Callable[[], Awaitable[None]],
        *,
        name: str,
        token: CancellationToken | None = None,
    ) -> ScheduledTask:
        """Run ``await factory()`` after *delay* seconds.

        *factory* is only called when the delay has elapsed, so the action
        reads whatever state is current at that moment.
        """

        async def _runner() -> None:
            await asyncio.sleep(delay)
            if token is not None and token.cancelled:
                logger.debug("Scheduled action %s cancelled before firing", name)
                return
            try:
                await factory()
            except Exception:
                logger.exception("Scheduled action %s failed", name)

        task = asyncio.get_running_loop().create_task(_runner(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return ScheduledTask(name, task, token)

    async def close(self) -> None:
        """Cancel every pending action.  Shutdown only."""
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Scheduler stopped with %d pending actions dropped", len(tasks))
        self._tasks.clear()
