"""
Job Worker

Background service that executes queued generation jobs and writes their
Status entries.

Handles:
- Picking up jobs from the push queue, or scanning job: keys when no queue is set
- Running each job through the dispatcher's sync path
- Re-queueing transient provider failures while retryCount < max_retries
- Writing exactly one Status per finished job under status:<id>
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from core.config import WorkerConfig
from core.errors import BrokerError, ProviderError

from .models import JOB_PREFIX, Job, Status, job_key, status_key
from .queue import MemoryJobQueue
from .store import JobStore

if TYPE_CHECKING:
    from services.generation.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class JobWorker:
    """Consumes Jobs and produces Status entries."""

    def __init__(
        self,
        dispatcher: "Dispatcher",
        store: JobStore,
        config: Optional[WorkerConfig] = None,
        status_ttl_seconds: int = 3600,
        queue: Optional[MemoryJobQueue] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.config = config or WorkerConfig()
        self.status_ttl_seconds = status_ttl_seconds
        self.queue = queue

        self._clock = clock
        self._last_purge: Optional[float] = None
        self._running = False

    async def _next_job_ids(self, wait: bool = False) -> list[str]:
        if self.queue is not None:
            if not wait:
                return self.queue.drain_nowait(self.config.batch_size)
            first = await self.queue.next(timeout=self.config.poll_interval_seconds)
            if first is None:
                return []
            return [first] + self.queue.drain_nowait(self.config.batch_size - 1)
        keys = await self.store.scan(JOB_PREFIX, limit=self.config.batch_size)
        return [key[len(JOB_PREFIX):] for key in keys]

    async def run_once(self, wait: bool = False) -> int:
        """
        Process one batch of jobs. Returns how many were picked up.

        With wait=True a queue-fed worker blocks up to one poll interval for
        the next job instead of returning straight away.
        """
        job_ids = await self._next_job_ids(wait)
        if not job_ids:
            return 0

        await asyncio.gather(*[self.process(job_id) for job_id in job_ids])
        return len(job_ids)

    async def process(self, job_id: str) -> Optional[Status]:
        """
        Run one job.

        Returns:
            The Status written, or None if the job was gone or re-queued
        """
        # services.generation imports this package; import lazily
        from services.generation.models import GenerationRequest

        raw = await self.store.get(job_key(job_id))
        if raw is None:
            logger.info(f"Job {job_id} expired or already consumed")
            return None

        job = Job.from_dict(raw)
        await self.store.delete(job_key(job_id))
        logger.info(f"Running job {job_id} (model={job.model}, retry={job.retry_count})")

        try:
            request = GenerationRequest.from_payload(job.model, job.rotation_index, job.payload)
            result = await self.dispatcher.run_sync(request)
            status = Status.complete(job.id, result.to_dict())

        except ProviderError as e:
            if e.retryable and job.retry_count < self.config.max_retries:
                await self._requeue(job)
                return None
            status = Status.failed(job.id, e.message)

        except BrokerError as e:
            status = Status.failed(job.id, e.message)

        except Exception as e:
            logger.exception(f"Job {job_id} crashed: {type(e).__name__}")
            status = Status.failed(job.id, "An unexpected error occurred")

        await self.store.put(status_key(job.id), status.to_dict(), self.status_ttl_seconds)
        logger.info(f"Job {job_id} finished: {status.state.value}")
        return status

    async def _requeue(self, job: Job):
        retry = job.for_retry()
        await self.store.put(job_key(retry.id), retry.to_dict(), retry.ttl)
        if self.queue is not None:
            await self.queue.publish(retry)
        logger.warning(
            f"Job {job.id} failed transiently, retry {retry.retry_count}/{self.config.max_retries}"
        )

    async def start(self):
        """Process jobs until stop() is called."""
        self._running = True
        logger.info("Job worker starting...")

        while self._running:
            try:
                processed = await self.run_once(wait=True)
                if not processed and self.queue is None:
                    await asyncio.sleep(self.config.poll_interval_seconds)
                await self.purge_if_due()

            except asyncio.CancelledError:
                logger.info("Job worker cancelled")
                break
            except Exception as e:
                logger.error(f"Job worker error: {e}")
                await asyncio.sleep(self.config.poll_interval_seconds)

    async def purge_if_due(self) -> int:
        """Sweep expired store entries, at most once per purge interval."""
        now = self._clock()
        if self._last_purge is not None and now - self._last_purge < self.config.purge_interval_seconds:
            return 0
        self._last_purge = now
        removed = await self.store.purge_expired()
        logger.debug(f"Purged {removed} expired store entries")
        return removed

    async def stop(self):
        """Stop after the current batch."""
        self._running = False
