"""
Job worker tests - submit -> worker -> check_status end to end.
"""

import pytest

from core.config import WorkerConfig
from core.errors import ProviderError, SafetyBlockError
from services.generation.dispatcher import Dispatcher
from services.generation.models import GenerationModel
from services.jobs import JobWorker, MemoryJobQueue, StatusPoller, job_key, status_key
from services.jobs.models import Job


@pytest.fixture
def dispatcher(config, registry, store):
    return Dispatcher(config=config, registry=registry, store=store, translator=None)


def _worker(dispatcher, store, queue=None, max_retries=3):
    return JobWorker(
        dispatcher,
        store,
        config=WorkerConfig(max_retries=max_retries, batch_size=10),
        queue=queue,
    )


class TestJobLifecycle:

    @pytest.mark.asyncio
    async def test_submit_run_and_poll(self, dispatcher, store, fake_providers):
        poller = StatusPoller(store)
        job_id = await dispatcher.submit("imagen-3.0-generate", 5, {"prompt": "cat"})

        assert await poller.check_status(job_id) == {"status": "pending"}

        processed = await _worker(dispatcher, store).run_once()

        assert processed == 1
        assert await store.get(job_key(job_id)) is None
        assert await poller.check_status(job_id) == {
            "status": "complete",
            "result": {"translatedPrompt": "cat", "base64": "AAAA"},
        }
        assert await poller.check_status(job_id) == {"status": "pending"}

        request, secret = fake_providers[GenerationModel.IMAGEN_3].calls[0]
        assert secret == "gemini_api_key-05"
        assert request.prompt == "cat"

    @pytest.mark.asyncio
    async def test_empty_store_processes_nothing(self, dispatcher, store):
        assert await _worker(dispatcher, store).run_once() == 0

    @pytest.mark.asyncio
    async def test_queue_mode(self, dispatcher, store):
        queue = MemoryJobQueue()
        dispatcher.queue = queue
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})

        assert await _worker(dispatcher, store, queue=queue).run_once() == 1
        assert (await StatusPoller(store).check_status(job_id))["status"] == "complete"

    @pytest.mark.asyncio
    async def test_expired_job_is_skipped(self, dispatcher, store, clock, fake_providers):
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})
        clock.advance(3600)

        status = await _worker(dispatcher, store).process(job_id)

        assert status is None
        assert fake_providers[GenerationModel.IMAGEN_3].calls == []
        assert await store.get(status_key(job_id)) is None


class TestFailures:

    @pytest.mark.asyncio
    async def test_transient_error_is_requeued(self, dispatcher, store, fake_providers):
        fake_providers[GenerationModel.IMAGEN_3].errors.append(
            ProviderError("imagen API timeout", error_code="TIMEOUT")
        )
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})
        worker = _worker(dispatcher, store)

        assert await worker.process(job_id) is None
        requeued = Job.from_dict(await store.get(job_key(job_id)))
        assert requeued.retry_count == 1

        status = await worker.process(job_id)
        assert status.state.value == "complete"

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, dispatcher, store, fake_providers):
        fake_providers[GenerationModel.IMAGEN_3].errors.extend(
            ProviderError("imagen API error (503): busy", error_code="HTTP_503") for _ in range(3)
        )
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})
        worker = _worker(dispatcher, store, max_retries=2)

        assert await worker.process(job_id) is None
        assert await worker.process(job_id) is None
        status = await worker.process(job_id)

        assert status.error_message == "imagen API error (503): busy"
        assert await StatusPoller(store).check_status(job_id) == {
            "status": "error",
            "errorMessage": "imagen API error (503): busy",
        }

    @pytest.mark.asyncio
    async def test_safety_block_is_not_retried(self, dispatcher, store, fake_providers):
        fake_providers[GenerationModel.IMAGEN_3].errors.append(
            SafetyBlockError("Generate failed: Image blocked due to safety settings.")
        )
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})

        status = await _worker(dispatcher, store).process(job_id)

        assert status.error_message == "Generate failed: Image blocked due to safety settings."
        assert await store.get(job_key(job_id)) is None

    @pytest.mark.asyncio
    async def test_missing_credential_fails_job(self, dispatcher, store):
        job_id = await dispatcher.submit("veo-2.0-generate", 0, {"prompt": "drone"})

        status = await _worker(dispatcher, store).process(job_id)

        assert status.state.value == "error"
        assert "VEO_SERVICE_ACCOUNT_01" in status.error_message

    @pytest.mark.asyncio
    async def test_unexpected_exception_hides_details(self, dispatcher, store, fake_providers):
        fake_providers[GenerationModel.IMAGEN_3].errors.append(RuntimeError("secret internals"))
        job_id = await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"})

        status = await _worker(dispatcher, store).process(job_id)

        assert status.error_message == "An unexpected error occurred"


class TestExpiredPurge:
    """Unread entries are swept on the purge interval."""

    @pytest.mark.asyncio
    async def test_purge_is_throttled(self, dispatcher, store, clock):
        worker = JobWorker(dispatcher, store, config=WorkerConfig(purge_interval_seconds=60), clock=clock)
        await store.put(status_key("a"), {"state": "complete"}, ttl_seconds=10)
        clock.advance(20)

        assert await worker.purge_if_due() == 1

        await store.put(status_key("b"), {"state": "complete"}, ttl_seconds=10)
        clock.advance(20)
        assert await worker.purge_if_due() == 0
        assert len(store._entries) == 1

        clock.advance(40)
        assert await worker.purge_if_due() == 1
        assert store._entries == {}


class TestWorkerCommand:

    @pytest.mark.asyncio
    async def test_refuses_to_run_without_database(self, monkeypatch):
        import main

        monkeypatch.delenv("DATABASE_URL", raising=False)

        assert await main.run_worker(once=True) == 1
