"""
Record sink client.

Mirrors generation results and errors to an external append-only service for
offline audit. Delivery is best-effort: a few attempts with exponential wait,
then the failure is logged and dropped so it never masks the primary result.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SinkRecord:
    """One audit entry."""
    prompt: str
    result_summary: str
    payload: str
    model_tag: str
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "resultSummary": self.result_summary,
            "payload": self.payload,
            "modelTag": self.model_tag,
            "isError": self.is_error,
        }


class RecordSink:
    """POSTs SinkRecords to the configured URL. No-op without a URL."""

    def __init__(
        self,
        url: Optional[str],
        http_client: httpx.AsyncClient,
        attempts: int = 3,
        wait_min: float = 0.5,
        wait_max: float = 4.0,
    ):
        self.url = url or ""
        self.http_client = http_client
        self.attempts = attempts
        self.wait_min = wait_min
        self.wait_max = wait_max

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def _post(self, record: SinkRecord):
        response = await self.http_client.post(self.url, json=record.to_dict())
        response.raise_for_status()

    async def record(self, record: SinkRecord) -> bool:
        """
        Deliver a record. Never raises.

        Returns:
            True if the sink accepted it
        """
        if not self.enabled:
            return False

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.attempts),
                wait=wait_exponential(multiplier=self.wait_min, min=self.wait_min, max=self.wait_max),
                retry=retry_if_exception_type(httpx.HTTPError),
                reraise=True,
            ):
                with attempt:
                    await self._post(record)
            return True
        except Exception as e:
            logger.error(f"Record sink save error: {type(e).__name__}: {e}")
            return False
