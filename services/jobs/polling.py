"""
Polling Protocol - single-delivery read of job outcomes.

check_status(job_id):
- no status:<id> entry (not written yet, or expired) -> {"status": "pending"}
- otherwise read it, delete it, and return the outcome

The delete happens while the response is being served, not when the client
acknowledges receipt. If delivery to the client fails after the read, that
result is gone for good. This is the accepted behaviour of the protocol.
"""

import logging
from typing import Any

from core.errors import ValidationError

from .models import JobState, Status, status_key
from .store import JobStore

logger = logging.getLogger(__name__)

MAX_JOB_ID_LENGTH = 128


class StatusPoller:
    """Read/delete-on-read interface over the Status side of the store."""

    def __init__(self, store: JobStore):
        self.store = store

    async def check_status(self, job_id: str) -> dict[str, Any]:
        if not job_id or len(job_id) > MAX_JOB_ID_LENGTH:
            raise ValidationError("jobId is required", error_code="INVALID_JOB_ID")

        key = status_key(job_id)
        raw = await self.store.get(key)
        if raw is None:
            return {"status": JobState.PENDING.value}

        await self.store.delete(key)
        status = Status.from_dict(raw)
        logger.info(f"Delivered status for job {job_id}: {status.state.value}")

        if status.state == JobState.COMPLETE:
            return {"status": JobState.COMPLETE.value, "result": status.result}
        return {
            "status": JobState.ERROR.value,
            "errorMessage": status.error_message or "Job failed",
        }
