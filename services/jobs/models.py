"""
Job and Status records for the async path.

A Job is written once by the dispatcher under job:<id>; the worker that runs it
writes exactly one Status under status:<id>. Both are plain JSON-compatible
dicts in the store.
"""

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

JOB_PREFIX = "job:"
STATUS_PREFIX = "status:"


def job_key(job_id: str) -> str:
    return f"{JOB_PREFIX}{job_id}"


def status_key(job_id: str) -> str:
    return f"{STATUS_PREFIX}{job_id}"


def new_job_id() -> str:
    return uuid.uuid4().hex


class JobState(str, Enum):
    """State reported to polling clients."""
    PENDING = "pending"      # no Status yet (or expired)
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class Job:
    """A unit of deferred generation work."""
    capability_class: str
    model: str
    payload: dict[str, Any]
    rotation_index: int = 0
    retry_count: int = 0
    ttl: int = 3600
    id: str = field(default_factory=new_job_id)
    submitted_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "capabilityClass": self.capability_class,
            "model": self.model,
            "payload": self.payload,
            "rotationIndex": self.rotation_index,
            "retryCount": self.retry_count,
            "submittedAt": self.submitted_at,
            "ttl": self.ttl,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            capability_class=data["capabilityClass"],
            model=data["model"],
            payload=data.get("payload") or {},
            rotation_index=data.get("rotationIndex", 0),
            retry_count=data.get("retryCount", 0),
            submitted_at=data.get("submittedAt", ""),
            ttl=data.get("ttl", 3600),
        )

    def for_retry(self) -> "Job":
        """A copy of this job with the retry counter bumped."""
        return replace(self, retry_count=self.retry_count + 1)


@dataclass(frozen=True)
class Status:
    """Outcome of a Job."""
    job_id: str
    state: JobState
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None

    @classmethod
    def complete(cls, job_id: str, result: dict[str, Any]) -> "Status":
        return cls(job_id=job_id, state=JobState.COMPLETE, result=result)

    @classmethod
    def failed(cls, job_id: str, error_message: str) -> "Status":
        return cls(job_id=job_id, state=JobState.ERROR, error_message=error_message)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "jobId": data["job_id"],
            "state": self.state.value,
            "result": data["result"],
            "errorMessage": data["error_message"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Status":
        return cls(
            job_id=data.get("jobId", ""),
            state=JobState(data["state"]),
            result=data.get("result"),
            error_message=data.get("errorMessage"),
        )
