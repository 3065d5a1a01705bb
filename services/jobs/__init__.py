"""
Async job orchestration.

- Job/Status records and key layout
- TTL-bounded durable store (in-memory or PostgreSQL)
- Optional push queue
- Single-delivery polling protocol
- Reference worker
"""

from .models import Job, JobState, Status, job_key, status_key
from .polling import StatusPoller
from .queue import MemoryJobQueue
from .store import JobStore, MemoryJobStore, PostgresJobStore, create_store
from .worker import JobWorker

__all__ = [
    "Job",
    "JobState",
    "Status",
    "job_key",
    "status_key",
    "StatusPoller",
    "MemoryJobQueue",
    "JobStore",
    "MemoryJobStore",
    "PostgresJobStore",
    "create_store",
    "JobWorker",
]
