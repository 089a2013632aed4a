"""
Cloud provisioning providers.

A provider creates a VM, waits for it to boot, and reports its addresses.
The VM configures itself from a cloud-init user-data script (see
``user_data``) that installs Docker and starts an agent-manager.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from shared.errors import BadRequestError

from ..schemas import ServerInfo, ServerType

logger = logging.getLogger(__name__)

MANAGER_API_PORT = 3000


@dataclass
class ProvisionServerOptions:
    server_type: str
    name: str
    description: str | None = None
    location: str | None = None
    ssh_key: str | None = None
    image: str | None = None
    user_data: str | None = None


@dataclass
class ProvisionedServer:
    server_id: str
    name: str
    public_ip: str
    endpoint: str
    status: str
    private_ip: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ProvisioningProvider(ABC):
    """Interface every cloud provider implements."""

    @abstractmethod
    def get_type(self) -> str: ...

    @abstractmethod
    def get_display_name(self) -> str: ...

    @abstractmethod
    async def get_server_types(self) -> list[ServerType]: ...

    @abstractmethod
    async def provision_server(self, options: ProvisionServerOptions) -> ProvisionedServer: ...

    @abstractmethod
    async def delete_server(self, server_id: str) -> None: ...

    @abstractmethod
    async def get_server_info(self, server_id: str) -> ServerInfo: ...


class CloudApiProvider(ProvisioningProvider):
    """
    Shared plumbing for REST-based clouds.

    - Bearer-token ``httpx.AsyncClient`` created lazily
    - Missing token is reported when the provider is used, not at startup
    - ``wait_for_server_ready`` polls ``get_server_info`` until ``ready_status``
    """

    api_base_url: str = ""
    token_env_var: str = ""
    ready_status: str = "running"

    poll_interval: float = 5.0
    boot_grace: float = 10.0
    max_wait: float = 300.0

    def __init__(self, api_token: str, timeout: float = 30.0):
        self.api_token = api_token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None
        if not api_token:
            logger.warning(
                f"{self.token_env_var} environment variable is not set. "
                f"{self.get_display_name()} provider will not function."
            )

    def _require_token(self) -> None:
        if not self.api_token:
            raise BadRequestError(f"{self.token_env_var} environment variable is not set")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_token}"},
            )
        return self._client

    async def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        self._require_token()
        client = await self._get_client()
        response = await client.request(method, path, **kwargs)
        response.raise_for_status()
        return response

    async def wait_for_server_ready(self, server_id: str) -> None:
        started = time.monotonic()
        while time.monotonic() - started < self.max_wait:
            try:
                info = await self.get_server_info(server_id)
                if info.status == self.ready_status:
                    # SSH and cloud-init need a moment after the status flips
                    await asyncio.sleep(self.boot_grace)
                    return
                logger.debug(f"Server {server_id} status: {info.status}, waiting...")
            except BadRequestError as e:
                logger.warning(f"Error checking server status: {e.message}")
            await asyncio.sleep(self.poll_interval)
        raise BadRequestError(f"Server {server_id} did not become ready within {int(self.max_wait * 1000)}ms")

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def api_error_detail(error: httpx.HTTPError) -> str:
    """Provider error message from the response body, if any."""
    response = getattr(error, "response", None)
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            nested = body.get("error")
            if isinstance(nested, dict) and nested.get("message"):
                return nested["message"]
            if body.get("message"):
                return body["message"]
    return str(error)


def is_not_found(error: httpx.HTTPError) -> bool:
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 404


def manager_endpoint(public_ip: str) -> str:
    return f"https://{public_ip}:{MANAGER_API_PORT}"


class ProvisioningProviderFactory:
    """Registry of provisioning providers keyed by type."""

    def __init__(self):
        self._providers: dict[str, ProvisioningProvider] = {}

    def register_provider(self, provider: ProvisioningProvider) -> None:
        provider_type = provider.get_type()
        if provider_type in self._providers:
            logger.warning(f"Provider with type '{provider_type}' is already registered. Overwriting existing provider.")
        self._providers[provider_type] = provider
        logger.info(f"Registered provisioning provider: {provider_type}")

    def get_provider(self, provider_type: str) -> ProvisioningProvider:
        provider = self._providers.get(provider_type)
        if provider is None:
            available = ", ".join(self._providers) or "none"
            raise KeyError(f"Provisioning provider with type '{provider_type}' not found. Available types: {available}")
        return provider

    def has_provider(self, provider_type: str) -> bool:
        return provider_type in self._providers

    def get_registered_types(self) -> list[str]:
        return list(self._providers)

    def get_all_providers(self) -> list[ProvisioningProvider]:
        return list(self._providers.values())

    async def close(self) -> None:
        for provider in self._providers.values():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
