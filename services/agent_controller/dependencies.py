"""
FastAPI dependencies for the agent-controller routers.

The token cache, the shared HTTP client for remote managers and the
provisioning providers live on ``app.state``; services are built per request.
"""

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from shared.db import Database

from .config.settings import ControllerSettings
from .provisioning import ProvisioningProviderFactory
from .proxy import (
    ClientAgentDeploymentsProxyService,
    ClientAgentEnvironmentVariablesProxyService,
    ClientAgentFileSystemProxyService,
    ClientAgentProxyService,
    ClientAgentVcsProxyService,
    RemoteManagerClient,
)
from .services.clients_service import ClientsService
from .services.keycloak_token import KeycloakTokenService
from .services.provisioning_service import ProvisioningService


def get_settings(request: Request) -> ControllerSettings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_token_service(request: Request) -> KeycloakTokenService:
    return request.app.state.token_service


def get_remote_client(request: Request) -> RemoteManagerClient:
    return request.app.state.remote_client


def get_provisioning_factory(request: Request) -> ProvisioningProviderFactory:
    return request.app.state.provisioning_factory


def get_session(database: Database = Depends(get_database)) -> Iterator[Session]:
    with database.session() as session:
        yield session


def get_clients_service(
    session: Session = Depends(get_session),
    token_service: KeycloakTokenService = Depends(get_token_service),
    remote: RemoteManagerClient = Depends(get_remote_client),
    settings: ControllerSettings = Depends(get_settings),
) -> ClientsService:
    return ClientsService(session, token_service, remote, settings)


def get_provisioning_service(
    session: Session = Depends(get_session),
    factory: ProvisioningProviderFactory = Depends(get_provisioning_factory),
    clients_service: ClientsService = Depends(get_clients_service),
    settings: ControllerSettings = Depends(get_settings),
) -> ProvisioningService:
    return ProvisioningService(session, factory, clients_service, settings)


def _proxy(proxy_class):
    def dependency(
        clients_service: ClientsService = Depends(get_clients_service),
        remote: RemoteManagerClient = Depends(get_remote_client),
    ):
        return proxy_class(clients_service, remote)

    return dependency


get_agents_proxy = _proxy(ClientAgentProxyService)
get_files_proxy = _proxy(ClientAgentFileSystemProxyService)
get_vcs_proxy = _proxy(ClientAgentVcsProxyService)
get_deployments_proxy = _proxy(ClientAgentDeploymentsProxyService)
get_environment_proxy = _proxy(ClientAgentEnvironmentVariablesProxyService)
