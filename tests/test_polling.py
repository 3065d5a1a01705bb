"""
Status polling tests - single delivery of job outcomes.
"""

import pytest

from core.errors import ValidationError
from services.jobs.models import Status, status_key
from services.jobs.polling import StatusPoller


class TestCheckStatus:
    """check_status(job_id) against a memory store."""

    @pytest.mark.asyncio
    async def test_unknown_job_is_pending(self, store):
        poller = StatusPoller(store)
        assert await poller.check_status("abc") == {"status": "pending"}

    @pytest.mark.asyncio
    async def test_complete_status_delivered_once(self, store):
        result = {"base64": "AAAA", "translatedPrompt": "cat"}
        await store.put(status_key("abc"), Status.complete("abc", result).to_dict(), 3600)
        poller = StatusPoller(store)

        first = await poller.check_status("abc")
        second = await poller.check_status("abc")

        assert first == {"status": "complete", "result": result}
        assert second == {"status": "pending"}
        assert await store.get(status_key("abc")) is None

    @pytest.mark.asyncio
    async def test_error_status_carries_message(self, store):
        await store.put(
            status_key("abc"),
            Status.failed("abc", "Generate failed: Image blocked due to safety settings.").to_dict(),
            3600,
        )

        response = await StatusPoller(store).check_status("abc")

        assert response == {
            "status": "error",
            "errorMessage": "Generate failed: Image blocked due to safety settings.",
        }

    @pytest.mark.asyncio
    async def test_raw_worker_write_is_readable(self, store):
        """Workers may write the minimal {state, result} shape."""
        await store.put(
            status_key("abc"),
            {"state": "complete", "result": {"base64": "AAAA", "translatedPrompt": "cat"}},
            3600,
        )

        response = await StatusPoller(store).check_status("abc")

        assert response["status"] == "complete"
        assert response["result"]["base64"] == "AAAA"

    @pytest.mark.asyncio
    async def test_expired_status_reads_as_pending(self, store, clock):
        await store.put(status_key("abc"), Status.complete("abc", {}).to_dict(), 10)
        clock.advance(10)

        assert await StatusPoller(store).check_status("abc") == {"status": "pending"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job_id", ["", "x" * 129])
    async def test_invalid_job_id(self, store, job_id):
        with pytest.raises(ValidationError) as exc_info:
            await StatusPoller(store).check_status(job_id)

        assert exc_info.value.error_code == "INVALID_JOB_ID"
