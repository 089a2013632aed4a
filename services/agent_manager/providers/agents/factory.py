"""Registry of agent providers keyed by agent type."""

import logging

from .base import AgentProvider

logger = logging.getLogger(__name__)


class AgentProviderFactory:
    def __init__(self):
        self._providers: dict[str, AgentProvider] = {}

    def register_provider(self, provider: AgentProvider) -> None:
        provider_type = provider.get_type()
        if provider_type in self._providers:
            logger.warning(f"Provider with type '{provider_type}' is already registered. Overwriting existing provider.")
        self._providers[provider_type] = provider
        logger.info(f"Registered agent provider: {provider_type}")

    def get_provider(self, provider_type: str) -> AgentProvider:
        provider = self._providers.get(provider_type)
        if provider is None:
            available = ", ".join(self._providers) or "none"
            raise ValueError(f"Agent provider with type '{provider_type}' not found. Available types: {available}")
        return provider

    def has_provider(self, provider_type: str) -> bool:
        return provider_type in self._providers

    def get_registered_types(self) -> list[str]:
        return list(self._providers)

    def get_providers(self) -> list[AgentProvider]:
        return list(self._providers.values())
