"""
HTTP transport to remote agent-managers.

Every proxied call goes through ``RemoteManagerClient.request``, which maps
upstream failures onto the controller's own error types so that the console
sees the remote message unchanged.
"""

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from shared.errors import BadRequestError, NotFoundError

if TYPE_CHECKING:
    from ..services.clients_service import ClientsService

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """Upstream ``message`` when present, otherwise the HTTP status text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        message = body["message"]
        return ", ".join(message) if isinstance(message, list) else str(message)
    try:
        return HTTPStatus(response.status_code).phrase
    except ValueError:
        return response.reason_phrase or "Request failed"


def segment(value: Any) -> str:
    """Quote one path segment (repository ids may contain ``/``)."""
    return quote(str(value), safe="")


class RemoteManagerClient:
    """Shared ``httpx.AsyncClient`` with TLS verification off (self-signed managers)."""

    def __init__(self, timeout: float = 600.0):
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, verify=False)
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        authorization: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        client = await self._get_client()
        headers = {"Authorization": authorization, "Content-Type": "application/json"}
        logger.debug(f"Proxying {method} {url}")
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            minutes = round((timeout or self.timeout) / 60)
            logger.error(f"Request to {url} timed out after {minutes} minutes")
            raise BadRequestError(
                f"Request timed out after {minutes} minutes. "
                "The operation may still be in progress on the remote server."
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"No response received from {url}: {e}")
            raise BadRequestError(f"Failed to connect to client endpoint: {e}") from e

        if response.status_code >= 400:
            message = error_message(response)
            logger.error(f"Request to {url} failed with status {response.status_code}: {message}")
            if response.status_code == 404:
                raise NotFoundError(message)
            if response.status_code == 400:
                raise BadRequestError(message)
            raise BadRequestError(f"Request failed: {message}")

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


class ClientProxy:
    """Base for the per-resource proxies: ``/api/agents`` on the client's endpoint."""

    def __init__(self, clients_service: "ClientsService", remote: RemoteManagerClient):
        self.clients_service = clients_service
        self.remote = remote

    async def _request(
        self,
        client_id,
        method: str,
        suffix: str = "",
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        client = self.clients_service.get_entity(client_id)
        authorization = await self.clients_service.get_auth_header(client_id)
        url = f"{client.endpoint.rstrip('/')}/api/agents{suffix}"
        return await self.remote.request(method, url, authorization, json=json, params=params)
