"""
Service wiring.

Builds the object graph once from a Config and hands it to the API server or
the worker. Nothing here is a module-level singleton.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from core.config import Config
from services.generation import Dispatcher, RecordSink, build_registry
from services.generation.providers import TranslateProvider
from services.jobs import JobStore, JobWorker, MemoryJobQueue, StatusPoller, create_store

logger = logging.getLogger(__name__)


@dataclass
class BrokerServices:
    """Everything a request handler or worker needs."""
    config: Config
    http_client: httpx.AsyncClient
    store: JobStore
    dispatcher: Dispatcher
    status_poller: StatusPoller
    queue: Optional[MemoryJobQueue] = None

    @classmethod
    async def build(
        cls,
        config: Config,
        queue: Optional[MemoryJobQueue] = None,
        operation_max_wait: Optional[float] = None,
        store: Optional[JobStore] = None,
    ) -> "BrokerServices":
        http_client = httpx.AsyncClient(timeout=config.endpoints.timeout_seconds)
        store = store or await create_store(config.store)

        dispatcher = Dispatcher(
            config=config,
            registry=build_registry(config, http_client, operation_max_wait=operation_max_wait),
            store=store,
            translator=TranslateProvider(http_client, config.endpoints),
            record_sink=RecordSink(config.record_sink_url, http_client),
            queue=queue,
        )

        return cls(
            config=config,
            http_client=http_client,
            store=store,
            dispatcher=dispatcher,
            status_poller=StatusPoller(store),
            queue=queue,
        )

    def create_worker(self) -> JobWorker:
        return JobWorker(
            self.dispatcher,
            self.store,
            config=self.config.worker,
            status_ttl_seconds=self.config.store.status_ttl_seconds,
            queue=self.queue,
        )

    async def aclose(self):
        await self.http_client.aclose()
        await self.store.close()
        logger.info("Broker services closed")
