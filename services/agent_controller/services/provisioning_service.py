"""
Server provisioning: create a VM running an agent-manager and register it
as a client.

The manager's configuration (auth, git, agent image) travels to the VM in
its cloud-init user data; the controller only keeps a reference to the
server so it can be inspected and torn down with the client.
"""

import json
import logging
import uuid

from sqlalchemy.orm import Session

from shared.errors import BadRequestError, NotFoundError

from ..config.settings import ControllerSettings
from ..models import AUTH_API_KEY, AUTH_KEYCLOAK, ProvisioningReference
from ..provisioning import ProvisioningProviderFactory, ProvisionServerOptions
from ..provisioning.user_data import GitConfig, KeycloakConfig, manager_environment, render_manager_config
from ..repositories import ProvisioningReferenceRepository
from ..schemas import CreateClientRequest, ProvisionedServerResponse, ProvisionServerRequest
from .clients_service import ClientsService, generate_api_key

logger = logging.getLogger(__name__)

DEFAULT_AGENT_WS_PORT = 8080


def _compact(values: dict) -> dict:
    return {key: value for key, value in values.items() if value is not None}


class ProvisioningService:
    def __init__(
        self,
        session: Session,
        provider_factory: ProvisioningProviderFactory,
        clients_service: ClientsService,
        settings: ControllerSettings,
    ):
        self.session = session
        self.provider_factory = provider_factory
        self.clients_service = clients_service
        self.settings = settings

    def _provider_or_error(self, provider_type: str):
        if not self.provider_factory.has_provider(provider_type):
            available = ", ".join(self.provider_factory.get_registered_types())
            raise BadRequestError(f"Provider type '{provider_type}' is not available. Available types: {available}")
        return self.provider_factory.get_provider(provider_type)

    def build_user_data(self, dto: ProvisionServerRequest, api_key: str | None) -> str:
        keycloak = None
        if dto.authentication_type.value == AUTH_KEYCLOAK:
            keycloak = KeycloakConfig(
                client_id=dto.keycloak_client_id or "",
                client_secret=dto.keycloak_client_secret or "",
                realm=dto.keycloak_realm or self.settings.KEYCLOAK_REALM,
                auth_server_url=dto.keycloak_auth_server_url or self.settings.KEYCLOAK_AUTH_SERVER_URL,
            )
        git = GitConfig(
            repository_url=dto.git_repository_url,
            username=dto.git_username,
            token=dto.git_token,
            password=dto.git_password,
            private_key=dto.git_private_key,
        )
        env = manager_environment(
            dto.authentication_type.value,
            api_key=api_key,
            keycloak=keycloak,
            git=git,
            cursor_api_key=dto.cursor_api_key,
            agent_default_image=dto.agent_default_image,
        )
        return render_manager_config(env)

    async def provision_server(self, dto: ProvisionServerRequest) -> ProvisionedServerResponse:
        provider = self._provider_or_error(dto.provider_type)

        api_key = None
        if dto.authentication_type.value == AUTH_API_KEY:
            api_key = dto.api_key or generate_api_key()

        user_data = self.build_user_data(dto, api_key)

        logger.info(f"Provisioning server via {dto.provider_type} provider...")
        server = await provider.provision_server(
            ProvisionServerOptions(
                server_type=dto.server_type,
                name=dto.name,
                description=dto.description,
                location=dto.location,
                user_data=user_data,
            )
        )
        logger.info(f"Server provisioned: {server.server_id} at {server.endpoint}")

        client = self.clients_service.create(
            CreateClientRequest(
                name=dto.name,
                description=dto.description or f"Provisioned via {dto.provider_type}",
                endpoint=server.endpoint,
                authentication_type=dto.authentication_type,
                api_key=api_key,
                keycloak_client_id=dto.keycloak_client_id,
                keycloak_client_secret=dto.keycloak_client_secret,
                keycloak_realm=dto.keycloak_realm,
                agent_ws_port=dto.agent_ws_port or DEFAULT_AGENT_WS_PORT,
            )
        )

        reference = ProvisioningReferenceRepository.save(
            self.session,
            ProvisioningReference(
                client_id=client.id,
                provider_type=dto.provider_type,
                server_id=server.server_id,
                server_name=server.name,
                public_ip=server.public_ip,
                private_ip=server.private_ip,
                provider_metadata=json.dumps(server.metadata or {}),
            ),
        )
        logger.info(f"Created provisioning reference {reference.id} for client {client.id}")

        return ProvisionedServerResponse(
            **client.model_dump(),
            provider_type=dto.provider_type,
            server_id=server.server_id,
            server_name=server.name,
            public_ip=server.public_ip,
            private_ip=server.private_ip,
            server_status=server.status,
        )

    async def delete_provisioned_server(self, client_id: uuid.UUID) -> None:
        reference = ProvisioningReferenceRepository.get_for_client(self.session, client_id)
        if reference is None:
            raise BadRequestError(f"No provisioning reference found for client {client_id}")

        if not self.provider_factory.has_provider(reference.provider_type):
            logger.warning(
                f"Provider type '{reference.provider_type}' is not available. "
                "Skipping server deletion, but will delete client and reference."
            )
        else:
            provider = self.provider_factory.get_provider(reference.provider_type)
            try:
                await provider.delete_server(reference.server_id)
                logger.info(f"Deleted server {reference.server_id} from {reference.provider_type}")
            except BadRequestError as e:
                logger.error(f"Failed to delete server from provider: {e.message}")

        self.clients_service.remove(client_id)

    async def get_server_info(self, client_id: uuid.UUID) -> dict:
        reference = ProvisioningReferenceRepository.get_for_client(self.session, client_id)
        if reference is None:
            raise NotFoundError(f"No provisioning reference found for client {client_id}")

        if not self.provider_factory.has_provider(reference.provider_type):
            return _compact(
                {
                    "serverId": reference.server_id,
                    "serverName": reference.server_name,
                    "publicIp": reference.public_ip,
                    "privateIp": reference.private_ip,
                    "providerType": reference.provider_type,
                }
            )

        provider = self.provider_factory.get_provider(reference.provider_type)
        info = await provider.get_server_info(reference.server_id)

        reference.public_ip = info.public_ip
        reference.private_ip = info.private_ip
        reference.server_name = info.name
        self.session.flush()

        return _compact(
            {
                "serverId": info.server_id,
                "serverName": info.name,
                "publicIp": info.public_ip,
                "privateIp": info.private_ip,
                "serverStatus": info.status,
                "providerType": reference.provider_type,
            }
        )
