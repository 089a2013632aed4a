"""Public configuration exposed to the console."""

from ..config.settings import ManagerSettings
from ..providers.agents import AgentProviderFactory
from ..schemas import AgentTypeInfo, ConfigResponse


class ConfigService:
    def __init__(self, settings: ManagerSettings, provider_factory: AgentProviderFactory):
        self.settings = settings
        self.provider_factory = provider_factory

    def get_config(self) -> ConfigResponse:
        return ConfigResponse(
            git_repository_url=self.settings.GIT_REPOSITORY_URL or None,
            agent_types=[
                AgentTypeInfo(type=provider.get_type(), display_name=provider.get_display_name())
                for provider in self.provider_factory.get_providers()
            ],
        )
