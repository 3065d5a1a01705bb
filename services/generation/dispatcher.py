"""
Dual-Path Dispatcher

Routes a validated request either to an immediate provider call (sync path)
or to the durable store for a worker to pick up (async path).

Sync path:
    credential pool -> provider adapter [-> token minter -> LRO poller] -> result
    Results and provider errors are mirrored to the record sink in the
    request's BackgroundScope.

Async path:
    Job -> store.put("job:<id>") [-> queue.publish] -> job id
    The provider call is never made here.

Usage:
    dispatcher = Dispatcher(config, registry, store, translator, record_sink)
    result = await dispatcher.run_sync(request, scope)
    job_id = await dispatcher.submit("imagen-3.0-generate", 3, {"prompt": "cat"})
"""

import logging
from typing import Any, Coroutine, Optional

from core.config import Config
from core.credentials import CapabilityClass
from core.errors import AuthError, OperationTimeoutError, ProviderError
from core.tasks import BackgroundScope
from services.jobs.models import Job, job_key
from services.jobs.queue import MemoryJobQueue
from services.jobs.store import JobStore

from .models import GenerationMode, GenerationRequest, GenerationResult
from .providers import TranslateProvider
from .record_sink import RecordSink, SinkRecord
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _record_prompt(request: GenerationRequest) -> str:
    """Prompt as written to the record sink; edits are tagged."""
    if request.mode == GenerationMode.EDIT:
        return request.reported_prompt()
    return request.prompt


class Dispatcher:
    """Composes credentials, providers, store and record sink."""

    def __init__(
        self,
        config: Config,
        registry: ProviderRegistry,
        store: JobStore,
        translator: TranslateProvider,
        record_sink: Optional[RecordSink] = None,
        queue: Optional[MemoryJobQueue] = None,
    ):
        self.config = config
        self.credentials = config.credentials
        self.registry = registry
        self.store = store
        self.translator = translator
        self.record_sink = record_sink
        self.queue = queue

    async def _mirror(self, record: SinkRecord, scope: Optional[BackgroundScope]):
        if self.record_sink is None or not self.record_sink.enabled:
            return
        coro: Coroutine[Any, Any, bool] = self.record_sink.record(record)
        if scope is None:
            await coro
        else:
            scope.spawn(coro)

    async def translate(self, prompt: str, rotation_index: int) -> str:
        """Translate/refine a prompt with a default-class key."""
        api_key = self.credentials.get_key(CapabilityClass.DEFAULT, rotation_index)
        return await self.translator.translate(prompt, api_key)

    async def run_sync(
        self,
        request: GenerationRequest,
        scope: Optional[BackgroundScope] = None,
    ) -> GenerationResult:
        """Invoke the provider inline and return its result."""
        model = request.model
        secret = self.credentials.get_key(model.capability_class, request.rotation_index)
        provider = self.registry.get(model)

        logger.info(
            f"Sync {request.mode.value} via {provider.name} "
            f"(model={model.value}, slot={request.rotation_index % self.credentials.pool_size})"
        )

        try:
            result = await provider.invoke(request, secret)
        except (ProviderError, AuthError, OperationTimeoutError) as e:
            logger.error(f"{provider.name} failed [{e.error_code}]: {e.message}")
            await self._mirror(
                SinkRecord(
                    prompt=_record_prompt(request),
                    result_summary=e.message,
                    payload="",
                    model_tag=model.value,
                    is_error=True,
                ),
                scope,
            )
            raise

        await self._mirror(
            SinkRecord(
                prompt=_record_prompt(request),
                result_summary=result.translated_prompt,
                payload=result.summary_payload(),
                model_tag=model.value,
            ),
            scope,
        )
        return result

    async def submit(
        self,
        model: Any,
        rotation_index: int,
        job_payload: dict[str, Any],
    ) -> str:
        """
        Persist a Job and return its id without calling any provider.

        The payload is validated here so a worker never receives a job it
        cannot run.
        """
        request = GenerationRequest.from_payload(model, rotation_index, job_payload)

        job = Job(
            capability_class=request.model.capability_class.value,
            model=request.model.value,
            payload=dict(job_payload),
            rotation_index=rotation_index,
            ttl=self.config.store.job_ttl_seconds,
        )
        await self.store.put(job_key(job.id), job.to_dict(), job.ttl)

        if self.queue is not None:
            await self.queue.publish(job)

        logger.info(f"Submitted job {job.id} (model={job.model})")
        return job.id

    async def log_error(
        self,
        prompt: str,
        model: str,
        error: str,
        scope: Optional[BackgroundScope] = None,
    ):
        """Forward a client-reported error to the record sink."""
        await self._mirror(
            SinkRecord(
                prompt=prompt,
                result_summary=error,
                payload="",
                model_tag=model,
                is_error=True,
            ),
            scope,
        )
