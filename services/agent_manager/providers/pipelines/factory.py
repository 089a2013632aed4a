"""Registry of pipeline providers keyed by provider type."""

import logging

from .base import PipelineProvider

logger = logging.getLogger(__name__)


class PipelineProviderFactory:
    def __init__(self):
        self._providers: dict[str, PipelineProvider] = {}

    def register_provider(self, provider: PipelineProvider) -> None:
        provider_type = provider.get_type()
        if provider_type in self._providers:
            logger.warning(f"Pipeline provider '{provider_type}' is already registered. Overwriting existing provider.")
        self._providers[provider_type] = provider
        logger.info(f"Registered pipeline provider: {provider_type}")

    def get_provider(self, provider_type: str) -> PipelineProvider:
        provider = self._providers.get(provider_type)
        if provider is None:
            available = ", ".join(self._providers) or "none"
            raise ValueError(f"Pipeline provider with type '{provider_type}' not found. Available types: {available}")
        return provider

    def has_provider(self, provider_type: str) -> bool:
        return provider_type in self._providers

    def get_registered_types(self) -> list[str]:
        return list(self._providers)
