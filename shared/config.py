"""
Centralized Configuration Settings.

Settings common to both control-plane services, loaded from the environment
with pydantic-settings. Each service subclasses ``ServiceSettings`` and adds
its own fields.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    """Application settings with environment variable loading.

    All settings have sensible defaults for development.
    Production deployments should override via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    SERVICE_NAME: str = "agent-service"
    ENVIRONMENT: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    WEBSOCKET_PORT: int = 8080
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    # =========================================================================
    # Database
    # =========================================================================
    DATABASE_URL: str = "sqlite:///./agenstra.db"
    DB_RUN_MIGRATIONS: bool = True

    # Base64 encoded 32-byte key for secret columns
    ENCRYPTION_KEY: str = ""

    # =========================================================================
    # CORS & Origins
    # =========================================================================
    CORS_ORIGINS: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    # =========================================================================
    # Rate Limiting
    # =========================================================================
    # Tri-state: unset follows ENVIRONMENT, "true"/"false" force it
    RATE_LIMIT_ENABLED: str | None = None
    RATE_LIMIT_TTL: int = 60
    RATE_LIMIT_LIMIT: int = 100
    RATE_LIMIT_SKIP_PATHS: str = "/api/health"

    @property
    def rate_limit_active(self) -> bool:
        flag = (self.RATE_LIMIT_ENABLED or "").strip().lower()
        if flag == "false":
            return False
        return self.is_production or flag == "true"

    @property
    def rate_limit_skip_paths_set(self) -> set[str]:
        return set(filter(None, self.RATE_LIMIT_SKIP_PATHS.split(",")))

    # =========================================================================
    # Authentication
    # =========================================================================
    STATIC_API_KEY: str = ""
    KEYCLOAK_SERVER_URL: str = ""
    KEYCLOAK_REALM: str = ""
    KEYCLOAK_CLIENT_ID: str = ""
    KEYCLOAK_JWKS_CACHE_TTL: int = 300
