"""
Optional push-style job queue.

The dispatcher publishes each submitted Job here when a queue is configured;
a JobWorker consumes from it. Without a queue the worker falls back to
scanning job: keys in the store, which satisfies the same contract.
"""

import asyncio
import logging
from typing import Optional

from .models import Job

logger = logging.getLogger(__name__)


class MemoryJobQueue:
    """In-process queue of job ids backed by asyncio.Queue."""

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)

    async def publish(self, job: Job) -> None:
        await self._queue.put(job.id)
        logger.debug(f"Queued job {job.id}")

    async def next(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next job id, or None when the timeout elapses first."""
        try:
            if timeout is None:
                return await self._queue.get()
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def drain_nowait(self, limit: int) -> list[str]:
        """Up to `limit` queued job ids without waiting."""
        ids = []
        while len(ids) < limit:
            try:
                ids.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return ids

    def qsize(self) -> int:
        return self._queue.qsize()
