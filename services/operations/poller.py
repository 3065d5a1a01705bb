"""
Long-Running Operation Poller

Polls a provider-issued operation handle until it finishes or the wall-clock
budget runs out. Each iteration sleeps one fixed interval and then queries.

- done + error     -> ProviderOperationError with the provider's message
- done + response  -> the response is returned immediately
- budget exhausted -> OperationTimeoutError (use the async path instead)

The default budget stays well under the platform's synchronous ceiling.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from core.errors import OperationTimeoutError, ProviderOperationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationHandle:
    """A provider operation being polled within one request."""
    name: str
    bearer_token: str = field(repr=False)
    created_at: float
    deadline: float


FetchOperation = Callable[[OperationHandle], Awaitable[dict[str, Any]]]


class OperationPoller:
    """Fixed-interval poller bounded by a wall-clock budget."""

    def __init__(
        self,
        max_wait_seconds: float = 45.0,
        poll_interval_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self.max_wait_seconds = max_wait_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def open_handle(self, name: str, bearer_token: str) -> OperationHandle:
        """Start the budget clock for an operation."""
        now = self._clock()
        return OperationHandle(
            name=name,
            bearer_token=bearer_token,
            created_at=now,
            deadline=now + self.max_wait_seconds,
        )

    async def wait(self, handle: OperationHandle, fetch: FetchOperation) -> dict[str, Any]:
        """
        Poll `fetch(handle)` until the operation is done.

        Returns:
            The operation's `response` object
        """
        polls = 0

        while True:
            remaining = handle.deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    f"Operation {handle.name} not done after {polls} polls "
                    f"({self.max_wait_seconds:.0f}s budget)"
                )
                raise OperationTimeoutError(
                    f"Operation did not complete within {self.max_wait_seconds:.0f} seconds. "
                    "Submit this request as a background job instead.",
                )

            await self._sleep(min(self.poll_interval_seconds, remaining))
            operation = await fetch(handle)
            polls += 1

            if not operation.get("done"):
                logger.debug(f"Operation {handle.name} still running (poll {polls})")
                continue

            error = operation.get("error")
            if error:
                message = error.get("message") if isinstance(error, dict) else str(error)
                logger.error(f"Operation {handle.name} failed: {message}")
                raise ProviderOperationError(
                    message or "Operation failed",
                    error_code=f"OPERATION_{error.get('code', 'FAILED')}" if isinstance(error, dict) else None,
                )

            logger.info(f"Operation {handle.name} done after {polls} polls")
            return operation.get("response") or {}
