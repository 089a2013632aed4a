"""
Hybrid Authentication Guard
Accepts either a static API key or a Keycloak-issued JWT.

When STATIC_API_KEY is configured every request must present it as
``Bearer <key>`` or ``ApiKey <key>``; the API-key principal bypasses role
checks. Otherwise bearer tokens are verified against the Keycloak realm's
JWKS and roles are read from ``realm_access`` and ``resource_access``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import Depends, Request, WebSocket
from jwt import PyJWKClient

from shared.config import ServiceSettings
from shared.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

API_KEY_PRINCIPAL_ROLE = "api-key-user"

# JWKS clients keyed by certs URL
_jwks_clients: dict[str, PyJWKClient] = {}
_anonymous_warned = False


@dataclass
class Principal:
    """Authenticated caller of an HTTP route or WebSocket."""

    id: str
    username: str
    roles: list[str] = field(default_factory=list)
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_api_key(self) -> bool:
        return API_KEY_PRINCIPAL_ROLE in self.roles

    @property
    def is_anonymous(self) -> bool:
        return self.id == "anonymous"


API_KEY_PRINCIPAL = Principal(id="api-key-user", username="api-key", roles=[API_KEY_PRINCIPAL_ROLE])
ANONYMOUS_PRINCIPAL = Principal(id="anonymous", username="anonymous")


def _jwks_url(settings: ServiceSettings) -> str:
    base = settings.KEYCLOAK_SERVER_URL.rstrip("/")
    return f"{base}/realms/{settings.KEYCLOAK_REALM}/protocol/openid-connect/certs"


def _get_jwks_client(settings: ServiceSettings) -> PyJWKClient:
    url = _jwks_url(settings)
    client = _jwks_clients.get(url)
    if client is None:
        client = PyJWKClient(url, cache_keys=True, lifespan=settings.KEYCLOAK_JWKS_CACHE_TTL)
        _jwks_clients[url] = client
    return client


def _split_authorization(authorization: str | None) -> tuple[str, str]:
    if not authorization:
        raise UnauthorizedError("Missing authorization header")
    parts = authorization.split(" ")
    if len(parts) != 2:
        raise UnauthorizedError("Invalid authorization header format")
    return parts[0], parts[1]


def extract_roles(claims: dict[str, Any], client_id: str = "") -> list[str]:
    """Collect realm roles and (when configured) client roles from Keycloak claims."""
    roles: list[str] = list(claims.get("realm_access", {}).get("roles", []))
    resource_access = claims.get("resource_access", {})
    if client_id:
        roles.extend(resource_access.get(client_id, {}).get("roles", []))
    else:
        for resource in resource_access.values():
            roles.extend(resource.get("roles", []))
    return sorted(set(roles))


def verify_keycloak_token(token: str, settings: ServiceSettings) -> Principal:
    """Verify an RS256 Keycloak access token and build the principal.

    Raises:
        UnauthorizedError: If the token is expired, malformed or not signed by the realm.
    """
    try:
        signing_key = _get_jwks_client(settings).get_signing_key_from_jwt(token)
        options = {"verify_aud": bool(settings.KEYCLOAK_CLIENT_ID)}
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.KEYCLOAK_CLIENT_ID or None,
            options=options,
        )
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Token expired") from e
    except (jwt.PyJWTError, jwt.PyJWKClientError) as e:
        logger.warning("Rejected bearer token: %s", e)
        raise UnauthorizedError("Invalid token") from e

    return Principal(
        id=claims.get("sub", ""),
        username=claims.get("preferred_username", claims.get("sub", "")),
        roles=extract_roles(claims, settings.KEYCLOAK_CLIENT_ID),
        claims=claims,
    )


def authenticate_authorization(authorization: str | None, settings: ServiceSettings) -> Principal:
    """Authenticate a raw ``Authorization`` header value."""
    global _anonymous_warned

    if settings.STATIC_API_KEY:
        scheme, credential = _split_authorization(authorization)
        if scheme not in ("Bearer", "ApiKey") or credential != settings.STATIC_API_KEY:
            raise UnauthorizedError("Invalid API key")
        return API_KEY_PRINCIPAL

    if settings.KEYCLOAK_SERVER_URL:
        if not authorization:
            raise UnauthorizedError("Authentication required")
        scheme, token = _split_authorization(authorization)
        if scheme != "Bearer":
            raise UnauthorizedError("Invalid authorization header format")
        return verify_keycloak_token(token, settings)

    if not _anonymous_warned:
        logger.warning("No STATIC_API_KEY or KEYCLOAK_SERVER_URL configured; requests are not authenticated")
        _anonymous_warned = True
    return ANONYMOUS_PRINCIPAL


def require_auth(request: Request) -> Principal:
    """
    Dependency: Require valid authentication
    Stores the principal on ``request.state.principal``.
    """
    settings: ServiceSettings = request.app.state.settings
    principal = authenticate_authorization(request.headers.get("authorization"), settings)
    request.state.principal = principal
    return principal


def require_roles(*roles: str):
    """
    Dependency factory: require any of ``roles``.
    API-key and anonymous principals bypass the check.
    """

    def dependency(principal: Principal = Depends(require_auth)) -> Principal:
        if principal.is_api_key or principal.is_anonymous:
            return principal
        if not any(role in principal.roles for role in roles):
            raise ForbiddenError(f"Required roles: {', '.join(roles)}")
        return principal

    return dependency


async def authenticate_websocket(websocket: WebSocket, settings: ServiceSettings) -> Principal | None:
    """
    Authenticate a WebSocket handshake from its Authorization header or ``token`` query param.

    Returns the principal, or closes the socket with code 4001 and returns None.
    """
    authorization = websocket.headers.get("authorization")
    token = websocket.query_params.get("token")
    if not authorization and token:
        authorization = f"Bearer {token}"
    try:
        # JWKS lookups block on network I/O
        return await asyncio.to_thread(authenticate_authorization, authorization, settings)
    except UnauthorizedError as e:
        logger.warning("WebSocket connection rejected: %s", e.message)
        await websocket.close(code=4001, reason=e.message)
        return None
