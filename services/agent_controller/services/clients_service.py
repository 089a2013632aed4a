"""
Registry of remote agent-managers ("clients").

A client authenticates the controller against its agent-manager either with
a static API key or with Keycloak client credentials. Responses never carry
the secrets; the API key is returned once, on creation.
"""

import asyncio
import logging
import secrets
import string
import uuid

from sqlalchemy.orm import Session

from shared.errors import BadRequestError, NotFoundError

from ..config.settings import ControllerSettings
from ..models import AUTH_API_KEY, AUTH_KEYCLOAK, Client
from ..proxy.base import RemoteManagerClient
from ..repositories import ClientRepository
from ..schemas import (
    ClientResponse,
    CreateClientRequest,
    CreateClientResponse,
    UpdateClientRequest,
)
from .keycloak_token import KeycloakTokenService

logger = logging.getLogger(__name__)

API_KEY_LENGTH = 32
_API_KEY_ALPHABET = string.ascii_letters + string.digits

KEYCLOAK_CREDENTIALS_REQUIRED = "Keycloak client ID and secret are required for keycloak authentication type"


def generate_api_key(length: int = API_KEY_LENGTH) -> str:
    return "".join(secrets.choice(_API_KEY_ALPHABET) for _ in range(length))


def to_client_response(client: Client, config: dict | None = None) -> ClientResponse:
    response = ClientResponse.model_validate(client)
    response.config = config
    return response


class ClientsService:
    def __init__(
        self,
        session: Session,
        token_service: KeycloakTokenService,
        remote: RemoteManagerClient,
        settings: ControllerSettings,
    ):
        self.session = session
        self.token_service = token_service
        self.remote = remote
        self.settings = settings

    def get_entity(self, client_id: uuid.UUID) -> Client:
        client = ClientRepository.get(self.session, client_id)
        if client is None:
            raise NotFoundError(f"Client with ID '{client_id}' not found")
        return client

    # =========================================================================
    # Remote config
    # =========================================================================

    async def get_client_config(self, client_id: uuid.UUID) -> dict | None:
        """``GET {endpoint}/api/config``; None when the manager is unreachable."""
        client = self.get_entity(client_id)
        url = f"{client.endpoint.rstrip('/')}/api/config"
        try:
            authorization = await self.get_auth_header(client_id)
            return await self.remote.request(
                "GET", url, authorization, timeout=self.settings.CLIENT_CONFIG_TIMEOUT / 1000
            )
        except (BadRequestError, NotFoundError) as e:
            logger.warning(f"Failed to fetch config for client {client_id}: {e.message}")
            return None

    async def _with_config(self, clients: list[Client]) -> list[ClientResponse]:
        configs = await asyncio.gather(*(self.get_client_config(client.id) for client in clients))
        return [to_client_response(client, config) for client, config in zip(clients, configs)]

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, dto: CreateClientRequest) -> CreateClientResponse:
        if ClientRepository.get_by_name(self.session, dto.name) is not None:
            raise BadRequestError(f"Client with name '{dto.name}' already exists")

        api_key = None
        if dto.authentication_type.value == AUTH_KEYCLOAK:
            if not dto.keycloak_client_id or not dto.keycloak_client_secret:
                raise BadRequestError(KEYCLOAK_CREDENTIALS_REQUIRED)
        else:
            api_key = dto.api_key or generate_api_key()

        client = ClientRepository.save(
            self.session,
            Client(
                name=dto.name,
                description=dto.description,
                endpoint=dto.endpoint,
                authentication_type=dto.authentication_type.value,
                api_key=api_key,
                keycloak_client_id=dto.keycloak_client_id,
                keycloak_client_secret=dto.keycloak_client_secret,
                keycloak_realm=dto.keycloak_realm,
                agent_ws_port=dto.agent_ws_port,
            ),
        )
        logger.info(f"Created client {client.name} ({client.id}, {client.authentication_type})")
        return CreateClientResponse(**to_client_response(client).model_dump(), api_key=api_key)

    async def find_all(self, limit: int = 10, offset: int = 0) -> list[ClientResponse]:
        return await self._with_config(ClientRepository.list_all(self.session, limit=limit, offset=offset))

    async def find_one(self, client_id: uuid.UUID) -> ClientResponse:
        client = self.get_entity(client_id)
        return to_client_response(client, await self.get_client_config(client_id))

    async def update(self, client_id: uuid.UUID, dto: UpdateClientRequest) -> ClientResponse:
        client = self.get_entity(client_id)

        if dto.name is not None:
            existing = ClientRepository.get_by_name(self.session, dto.name)
            if existing is not None and existing.id != client.id:
                raise BadRequestError(f"Client with name '{dto.name}' already exists")

        target_type = dto.authentication_type.value if dto.authentication_type else client.authentication_type
        keycloak_client_id = dto.keycloak_client_id if dto.keycloak_client_id is not None else client.keycloak_client_id
        keycloak_secret = (
            dto.keycloak_client_secret if dto.keycloak_client_secret is not None else client.keycloak_client_secret
        )
        updating_keycloak = dto.keycloak_client_id is not None or dto.keycloak_client_secret is not None
        if target_type == AUTH_KEYCLOAK and (client.authentication_type != AUTH_KEYCLOAK or updating_keycloak):
            if not keycloak_client_id or not keycloak_secret:
                raise BadRequestError(KEYCLOAK_CREDENTIALS_REQUIRED)

        self._clear_token_cache(client)

        for field_name in (
            "name",
            "description",
            "endpoint",
            "api_key",
            "keycloak_client_id",
            "keycloak_client_secret",
            "keycloak_realm",
            "agent_ws_port",
        ):
            value = getattr(dto, field_name)
            if value is not None:
                setattr(client, field_name, value)
        client.authentication_type = target_type

        if target_type == AUTH_API_KEY and not client.api_key:
            client.api_key = generate_api_key()
            logger.info(f"Generated API key for client {client.id}")

        self.session.flush()
        return to_client_response(client, await self.get_client_config(client.id))

    def remove(self, client_id: uuid.UUID) -> None:
        client = self.get_entity(client_id)
        self._clear_token_cache(client)
        ClientRepository.delete(self.session, client)
        logger.info(f"Removed client {client.name} ({client_id})")

    # =========================================================================
    # Authentication against the remote manager
    # =========================================================================

    def _clear_token_cache(self, client: Client) -> None:
        realm = client.keycloak_realm or self.settings.KEYCLOAK_REALM
        server_url = self.settings.KEYCLOAK_AUTH_SERVER_URL
        if client.keycloak_client_id and realm and server_url:
            self.token_service.clear_cache(server_url, realm, client.keycloak_client_id)

    async def get_access_token(self, client_id: uuid.UUID) -> str:
        client = self.get_entity(client_id)
        if client.authentication_type == AUTH_API_KEY:
            if not client.api_key:
                raise BadRequestError("API key is not configured for this client")
            return client.api_key

        if not client.keycloak_client_id or not client.keycloak_client_secret:
            raise BadRequestError("Keycloak client credentials are not configured for this client")
        server_url = self.settings.KEYCLOAK_AUTH_SERVER_URL
        if not server_url:
            raise BadRequestError("KEYCLOAK_AUTH_SERVER_URL environment variable is not set")
        realm = client.keycloak_realm or self.settings.KEYCLOAK_REALM
        if not realm:
            raise BadRequestError("Keycloak realm is not configured for this client and KEYCLOAK_REALM is not set")
        return await self.token_service.get_access_token(
            server_url, realm, client.keycloak_client_id, client.keycloak_client_secret
        )

    async def get_auth_header(self, client_id: uuid.UUID) -> str:
        return f"Bearer {await self.get_access_token(client_id)}"
