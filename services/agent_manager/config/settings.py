"""
Agent-manager configuration.

All environment variables are defined here using Pydantic Settings.
"""

from functools import lru_cache

from shared.config import ServiceSettings


class ManagerSettings(ServiceSettings):
    """Settings for the agent-manager service."""

    SERVICE_NAME: str = "agent-manager"
    PORT: int = 3000
    WEBSOCKET_PORT: int = 8080
    DATABASE_URL: str = "sqlite:///./agent-manager.db"

    # =========================================================================
    # Git
    # =========================================================================
    GIT_REPOSITORY_URL: str = ""
    GIT_USERNAME: str = ""
    GIT_TOKEN: str = ""
    GIT_PASSWORD: str = ""
    GIT_PRIVATE_KEY: str = ""
    GIT_COMMIT_AUTHOR_NAME: str = "Agenstra Agent"
    GIT_COMMIT_AUTHOR_EMAIL: str = "agent@agenstra.local"

    # =========================================================================
    # Agent images
    # =========================================================================
    CURSOR_API_KEY: str = ""
    AGENT_DEFAULT_IMAGE: str = "ghcr.io/forepath/agenstra-manager-worker:latest"
    CURSOR_AGENT_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-worker:latest"
    CURSOR_AGENT_VIRTUAL_WORKSPACE_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-vnc:latest"
    CURSOR_AGENT_SSH_CONNECTION_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-ssh:latest"
    OPENCODE_AGENT_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-worker:latest"
    OPENCODE_AGENT_VIRTUAL_WORKSPACE_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-vnc:latest"
    OPENCODE_AGENT_SSH_CONNECTION_DOCKER_IMAGE: str = "ghcr.io/forepath/agenstra-manager-ssh:latest"

    # =========================================================================
    # Docker
    # =========================================================================
    AGENTS_VOLUME_ROOT: str = "/opt/agents"
    DOCKER_HOST: str = ""


@lru_cache
def get_settings() -> ManagerSettings:
    """Get cached settings instance."""
    return ManagerSettings()
