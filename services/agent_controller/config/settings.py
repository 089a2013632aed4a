"""
Agent-controller configuration.

All environment variables are defined here using Pydantic Settings.
Durations follow the ``*_MS`` suffix where they are milliseconds.
"""

from functools import lru_cache

from shared.config import ServiceSettings


class ControllerSettings(ServiceSettings):
    """Settings for the agent-controller service."""

    SERVICE_NAME: str = "agent-controller"
    PORT: int = 3100
    WEBSOCKET_PORT: int = 8081
    DATABASE_URL: str = "sqlite:///./agent-controller.db"

    # =========================================================================
    # Remote agent-managers
    # =========================================================================
    KEYCLOAK_AUTH_SERVER_URL: str = ""
    REQUEST_TIMEOUT: int = 600000
    CLIENT_CONFIG_TIMEOUT: int = 5000
    CLIENTS_REMOTE_WS_PORT: int = 8080

    # =========================================================================
    # /clients WebSocket gateway
    # =========================================================================
    SOCKET_RECONNECTION_ATTEMPTS: int = 5
    SOCKET_RECONNECTION_DELAY_MS: int = 1000
    SOCKET_RECONNECTION_DELAY_MAX_MS: int = 5000
    SOCKET_WAIT_TIMEOUT_MS: int = 5000

    # =========================================================================
    # Cloud provisioning
    # =========================================================================
    HETZNER_API_TOKEN: str = ""
    DIGITALOCEAN_API_TOKEN: str = ""

    @property
    def request_timeout_seconds(self) -> float:
        return self.REQUEST_TIMEOUT / 1000


@lru_cache
def get_settings() -> ControllerSettings:
    """Get cached settings instance."""
    return ControllerSettings()
