"""
Keycloak client-credentials tokens for authenticating against remote
agent-managers.

Tokens are cached per ``server:realm:client_id`` until 30 seconds before
they expire.
"""

import logging
import time
from dataclasses import dataclass

import httpx

from shared.errors import BadRequestError

logger = logging.getLogger(__name__)

EXPIRY_LEEWAY_SECONDS = 30
TOKEN_REQUEST_TIMEOUT = 10.0


@dataclass
class CachedToken:
    token: str
    expires_at: float


def _cache_key(server_url: str, realm: str, client_id: str) -> str:
    return f"{server_url}:{realm}:{client_id}"


class KeycloakTokenService:
    def __init__(self):
        self._cache: dict[str, CachedToken] = {}

    async def get_access_token(self, server_url: str, realm: str, client_id: str, client_secret: str) -> str:
        key = _cache_key(server_url, realm, client_id)
        cached = self._cache.get(key)
        if cached and cached.expires_at > time.time():
            logger.debug(f"Using cached token for client {client_id} in realm {realm}")
            return cached.token

        token_url = f"{server_url.rstrip('/')}/realms/{realm}/protocol/openid-connect/token"
        try:
            async with httpx.AsyncClient(timeout=TOKEN_REQUEST_TIMEOUT) as client:
                response = await client.post(
                    token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": client_id,
                        "client_secret": client_secret,
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = _error_description(e.response) or str(e)
            logger.error(f"Failed to get token from Keycloak for client {client_id} in realm {realm}: {detail}")
            raise BadRequestError(f"Failed to obtain Keycloak token: {detail}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to get token from Keycloak for client {client_id} in realm {realm}: {e}")
            raise BadRequestError(f"Failed to obtain Keycloak token: {e}") from e

        access_token = payload.get("access_token")
        if not access_token:
            raise BadRequestError("Failed to obtain Keycloak token: Keycloak did not return an access token")

        expires_in = int(payload.get("expires_in") or 0)
        self._cache[key] = CachedToken(access_token, time.time() + expires_in - EXPIRY_LEEWAY_SECONDS)
        logger.info(f"Obtained token for client {client_id} in realm {realm}")
        return access_token

    def clear_cache(self, server_url: str, realm: str, client_id: str) -> None:
        self._cache.pop(_cache_key(server_url, realm, client_id), None)
        logger.debug(f"Cleared token cache for client {client_id} in realm {realm}")

    def clear_all_cache(self) -> None:
        self._cache.clear()


def _error_description(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error")
    return None
