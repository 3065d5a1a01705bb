"""
Provider registry keyed by GenerationModel.
"""

import logging
from typing import Optional

import httpx

from core.config import Config
from core.errors import ConfigurationError
from services.identity import TokenMinter
from services.operations import OperationPoller

from .models import GenerationModel
from .providers import FlashImageProvider, ImagenProvider, Provider, VideoProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Explicit model -> adapter mapping."""

    def __init__(self, providers: Optional[dict[GenerationModel, Provider]] = None):
        self._providers: dict[GenerationModel, Provider] = dict(providers or {})

    def register(self, model: GenerationModel, provider: Provider):
        if provider.capability_class != model.capability_class:
            raise ValueError(
                f"{provider.name} serves {provider.capability_class.value}, "
                f"but {model.value} needs {model.capability_class.value}"
            )
        self._providers[model] = provider

    def get(self, model: GenerationModel) -> Provider:
        provider = self._providers.get(model)
        if provider is None:
            raise ConfigurationError(
                f"No provider registered for model {model.value}",
                error_code="NO_PROVIDER",
            )
        return provider

    def models(self) -> list[GenerationModel]:
        return list(self._providers)


def build_registry(
    config: Config,
    http_client: httpx.AsyncClient,
    operation_max_wait: Optional[float] = None,
) -> ProviderRegistry:
    """
    Wire the standard adapters.

    Args:
        config: Broker configuration
        http_client: Shared HTTP client
        operation_max_wait: Override the video polling budget (workers are not
            bound by the synchronous request ceiling)
    """
    poller = OperationPoller(
        max_wait_seconds=operation_max_wait or config.video.poll_max_wait_seconds,
        poll_interval_seconds=config.video.poll_interval_seconds,
    )
    minter = TokenMinter(
        http_client,
        scope=config.video.token_scope,
        lifetime_seconds=config.video.token_lifetime_seconds,
    )

    registry = ProviderRegistry()
    registry.register(GenerationModel.IMAGEN_3, ImagenProvider(http_client, config.endpoints))
    registry.register(GenerationModel.FLASH_IMAGE, FlashImageProvider(http_client, config.endpoints))
    registry.register(GenerationModel.VEO_2, VideoProvider(http_client, config.video, minter, poller))

    logger.debug(f"Registered providers: {[m.value for m in registry.models()]}")
    return registry
