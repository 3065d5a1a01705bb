"""
Dispatcher tests - sync path routing and async job submission.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.credentials import CapabilityClass
from core.errors import (
    AuthError,
    ConfigurationError,
    OperationTimeoutError,
    ProviderError,
    ValidationError,
)
from core.tasks import BackgroundScope
from services.generation.dispatcher import Dispatcher
from services.generation.models import GenerationMode, GenerationModel, GenerationRequest
from services.jobs.models import Job, job_key
from services.jobs.queue import MemoryJobQueue


def _dispatcher(config, registry, store, record_sink=None, queue=None, translator=None):
    return Dispatcher(
        config=config,
        registry=registry,
        store=store,
        translator=translator or MagicMock(),
        record_sink=record_sink,
        queue=queue,
    )


def _sink():
    sink = MagicMock()
    sink.enabled = True
    sink.record = AsyncMock(return_value=True)
    return sink


class TestRunSync:
    """Sync path: credential pool -> provider."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rotation_index,expected_key", [
        (0, "gemini_api_key-00"),
        (3, "gemini_api_key-03"),
        (13, "gemini_api_key-03"),
        (29, "gemini_api_key-09"),
    ])
    async def test_rotation_selects_key(self, config, registry, store, fake_providers, rotation_index, expected_key):
        dispatcher = _dispatcher(config, registry, store)
        request = GenerationRequest(prompt="cat", model=GenerationModel.IMAGEN_3, rotation_index=rotation_index)

        await dispatcher.run_sync(request)

        _, secret = fake_providers[GenerationModel.IMAGEN_3].calls[0]
        assert secret == expected_key

    @pytest.mark.asyncio
    async def test_flash_image_uses_its_own_pool(self, config, registry, store, fake_providers):
        dispatcher = _dispatcher(config, registry, store)
        request = GenerationRequest(
            prompt="blue", model=GenerationModel.FLASH_IMAGE, rotation_index=4,
            base_image="AAAA", mode=GenerationMode.EDIT,
        )

        result = await dispatcher.run_sync(request)

        assert fake_providers[GenerationModel.FLASH_IMAGE].calls[0][1] == "gemini_flash_image_api_key-04"
        assert result.translated_prompt == "[Edit] blue"

    @pytest.mark.asyncio
    async def test_missing_key_never_calls_provider(self, config, registry, store, fake_providers):
        dispatcher = _dispatcher(config, registry, store)
        request = GenerationRequest(prompt="drone", model=GenerationModel.VEO_2)

        with pytest.raises(ConfigurationError) as exc_info:
            await dispatcher.run_sync(request)

        assert "VEO_SERVICE_ACCOUNT_01" in exc_info.value.message
        assert fake_providers[GenerationModel.VEO_2].calls == []

    @pytest.mark.asyncio
    async def test_success_is_mirrored_in_scope(self, config, registry, store):
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)
        scope = BackgroundScope()

        await dispatcher.run_sync(GenerationRequest(prompt="cat", model=GenerationModel.IMAGEN_3), scope)
        await scope.drain()

        record = sink.record.await_args.args[0]
        assert record.prompt == "cat"
        assert record.payload == "AAAA"
        assert record.model_tag == "imagen-3.0-generate"
        assert record.is_error is False

    @pytest.mark.asyncio
    async def test_provider_error_mirrored_and_reraised(self, config, registry, store, fake_providers):
        fake_providers[GenerationModel.IMAGEN_3].errors.append(
            ProviderError("imagen API error (500): boom", error_code="HTTP_500")
        )
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)

        with pytest.raises(ProviderError):
            await dispatcher.run_sync(GenerationRequest(prompt="cat", model=GenerationModel.IMAGEN_3))

        record = sink.record.await_args.args[0]
        assert record.is_error is True
        assert record.result_summary == "imagen API error (500): boom"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        AuthError("Token exchange failed", error_code="TOKEN_EXCHANGE_FAILED"),
        OperationTimeoutError("Video generation did not finish within 45s"),
    ])
    async def test_auth_and_timeout_errors_mirrored(self, config, registry, store, fake_providers, error):
        fake_providers[GenerationModel.IMAGEN_3].errors.append(error)
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)

        with pytest.raises(type(error)):
            await dispatcher.run_sync(GenerationRequest(prompt="cat", model=GenerationModel.IMAGEN_3))

        record = sink.record.await_args.args[0]
        assert record.is_error is True
        assert record.result_summary == error.message

    @pytest.mark.asyncio
    async def test_edit_record_is_tagged(self, config, registry, store):
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)
        request = GenerationRequest(
            prompt="blue", model=GenerationModel.FLASH_IMAGE, base_image="AAAA", mode=GenerationMode.EDIT,
        )

        await dispatcher.run_sync(request)

        assert sink.record.await_args.args[0].prompt == "[Edit] blue"

    @pytest.mark.asyncio
    async def test_generate_record_keeps_bare_prompt(self, config, registry, store):
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)
        request = GenerationRequest(prompt="cat", model=GenerationModel.IMAGEN_3, styles=("anime",))

        await dispatcher.run_sync(request)

        record = sink.record.await_args.args[0]
        assert record.prompt == "cat"
        assert record.result_summary == "cat, anime style"

    @pytest.mark.asyncio
    async def test_translate_uses_default_pool(self, config, registry, store):
        translator = MagicMock()
        translator.translate = AsyncMock(return_value="A cat")
        dispatcher = _dispatcher(config, registry, store, translator=translator)

        assert await dispatcher.translate("un chat", 12) == "A cat"
        translator.translate.assert_awaited_once_with("un chat", "gemini_api_key-02")


class TestSubmit:
    """Async path: Job -> store, no provider call."""

    @pytest.mark.asyncio
    async def test_submit_stores_job_without_calling_provider(self, config, registry, store, fake_providers):
        dispatcher = _dispatcher(config, registry, store)

        job_id = await dispatcher.submit("imagen-3.0-generate", 3, {"prompt": "cat", "styles": ["anime"]})

        job = Job.from_dict(await store.get(job_key(job_id)))
        assert job.model == "imagen-3.0-generate"
        assert job.capability_class == CapabilityClass.DEFAULT.value
        assert job.rotation_index == 3
        assert job.retry_count == 0
        assert job.payload == {"prompt": "cat", "styles": ["anime"]}
        assert all(not provider.calls for provider in fake_providers.values())

    @pytest.mark.asyncio
    async def test_job_ids_are_unique(self, config, registry, store):
        dispatcher = _dispatcher(config, registry, store)
        ids = {await dispatcher.submit("imagen-3.0-generate", 0, {"prompt": "cat"}) for _ in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_submit_publishes_to_queue(self, config, registry, store):
        queue = MemoryJobQueue()
        dispatcher = _dispatcher(config, registry, store, queue=queue)

        job_id = await dispatcher.submit("veo-2.0-generate", 1, {"prompt": "drone"})

        assert queue.drain_nowait(10) == [job_id]

    @pytest.mark.asyncio
    async def test_unknown_model_rejected(self, config, registry, store):
        dispatcher = _dispatcher(config, registry, store)

        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.submit("dall-e", 0, {"prompt": "cat"})

        assert exc_info.value.error_code == "UNKNOWN_MODEL"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_edit_without_base_image_rejected(self, config, registry, store):
        dispatcher = _dispatcher(config, registry, store)

        with pytest.raises(ValidationError) as exc_info:
            await dispatcher.submit("gemini-2.5-flash-image-preview", 0, {"prompt": "blue", "mode": "edit"})

        assert exc_info.value.message == "Base image is required for editing"

    @pytest.mark.asyncio
    async def test_edit_job_runs_on_flash_image(self, config, registry, store):
        dispatcher = _dispatcher(config, registry, store)

        job_id = await dispatcher.submit(
            "imagen-3.0-generate", 0, {"prompt": "blue", "mode": "edit", "baseImage": "AAAA"}
        )

        job = Job.from_dict(await store.get(job_key(job_id)))
        assert job.model == GenerationModel.FLASH_IMAGE.value


class TestLogError:

    @pytest.mark.asyncio
    async def test_forwards_error_record(self, config, registry, store):
        sink = _sink()
        dispatcher = _dispatcher(config, registry, store, record_sink=sink)

        await dispatcher.log_error("cat", "imagen-3.0-generate", "network down")

        record = sink.record.await_args.args[0]
        assert record.is_error is True
        assert record.result_summary == "network down"

    @pytest.mark.asyncio
    async def test_noop_without_sink(self, config, registry, store):
        dispatcher = _dispatcher(config, registry, store)
        await dispatcher.log_error("cat", "imagen-3.0-generate", "network down")
