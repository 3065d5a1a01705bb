"""
Scoped background tasks.

Fire-and-forget work (record sink writes) is spawned into a BackgroundScope
owned by one request. The scope's drain() barrier must run before the request
context is torn down; the API schedules it as a FastAPI background task, which
runs after the response has been sent.

    scope = BackgroundScope()
    scope.spawn(sink.record(...))
    ...
    await scope.drain()
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class BackgroundScope:
    """Tracks tasks spawned for one request and waits for them on drain()."""

    def __init__(self, drain_timeout: Optional[float] = 30.0):
        self.drain_timeout = drain_timeout
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Schedule a coroutine on the running loop and track it."""
        if self._closed:
            coro.close()
            raise RuntimeError("BackgroundScope already drained")

        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    async def drain(self):
        """
        Wait for every spawned task, cancelling stragglers after the timeout.

        Task exceptions are logged, not raised.
        """
        self._closed = True
        if not self._tasks:
            return

        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=self.drain_timeout)

        for task in not_done:
            logger.warning("Cancelling background task that outlived the request")
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Background task failed: {task.exception()}")

        self._tasks.clear()
