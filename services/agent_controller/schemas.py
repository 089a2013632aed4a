"""
Request and response models for the agent-controller API.

Only the controller's own resources (clients, provisioning) are modelled;
agent payloads proxied to remote agent-managers pass through as JSON.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from shared.schemas import CamelModel, require_text


class AuthenticationType(str, Enum):
    API_KEY = "api_key"
    KEYCLOAK = "keycloak"


def _valid_endpoint(value: str | None) -> str | None:
    if value is not None and not value.startswith(("http://", "https://")):
        raise ValueError("Endpoint must be a valid URL")
    return value


# =============================================================================
# Clients
# =============================================================================


class CreateClientRequest(CamelModel):
    name: str
    description: str | None = None
    endpoint: str
    authentication_type: AuthenticationType
    api_key: str | None = None
    keycloak_client_id: str | None = None
    keycloak_client_secret: str | None = None
    keycloak_realm: str | None = None
    agent_ws_port: int | None = Field(default=None, ge=1, le=65535)

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        return require_text(value, "Name is required")

    @field_validator("endpoint")
    @classmethod
    def _endpoint(cls, value: str) -> str:
        return _valid_endpoint(require_text(value, "Endpoint is required"))


class UpdateClientRequest(CamelModel):
    name: str | None = None
    description: str | None = None
    endpoint: str | None = None
    authentication_type: AuthenticationType | None = None
    api_key: str | None = None
    keycloak_client_id: str | None = None
    keycloak_client_secret: str | None = None
    keycloak_realm: str | None = None
    agent_ws_port: int | None = Field(default=None, ge=1, le=65535)

    @field_validator("endpoint")
    @classmethod
    def _endpoint(cls, value: str | None) -> str | None:
        return _valid_endpoint(value)


class ClientResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    endpoint: str
    authentication_type: AuthenticationType
    agent_ws_port: int | None = None
    config: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class CreateClientResponse(ClientResponse):
    api_key: str | None = None


# =============================================================================
# Provisioning
# =============================================================================


class ProvisionServerRequest(CamelModel):
    provider_type: str
    server_type: str
    name: str
    description: str | None = None
    location: str | None = None
    authentication_type: AuthenticationType
    api_key: str | None = None
    keycloak_client_id: str | None = None
    keycloak_client_secret: str | None = None
    keycloak_realm: str | None = None
    keycloak_auth_server_url: str | None = None
    agent_ws_port: int | None = Field(default=None, ge=1, le=65535)
    git_repository_url: str | None = None
    git_username: str | None = None
    git_token: str | None = None
    git_password: str | None = None
    git_private_key: str | None = None
    cursor_api_key: str | None = None
    agent_default_image: str | None = None

    @field_validator("provider_type")
    @classmethod
    def _provider_required(cls, value: str) -> str:
        return require_text(value, "Provider type is required")

    @field_validator("server_type")
    @classmethod
    def _server_type_required(cls, value: str) -> str:
        return require_text(value, "Server type is required")

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        return require_text(value, "Name is required")


class ProvisionedServerResponse(CreateClientResponse):
    provider_type: str
    server_id: str
    server_name: str
    public_ip: str
    private_ip: str | None = None
    server_status: str


class ServerType(CamelModel):
    id: str
    name: str
    cores: int
    memory: float
    disk: int
    price_per_month: float | None = None
    description: str | None = None


class ProviderInfo(CamelModel):
    type: str
    display_name: str


class ServerInfo(CamelModel):
    server_id: str
    name: str
    public_ip: str | None = None
    private_ip: str | None = None
    status: str
    metadata: dict[str, Any] | None = None
