"""
FastAPI dependencies for the agent-manager routers.

Long-lived collaborators (database, Docker client, provider registries) are
built once in the lifespan and kept on ``app.state``; services are created
per request around a request-scoped session.
"""

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from shared.db import Database

from .config.settings import ManagerSettings
from .providers.agents import AgentProviderFactory
from .providers.chat_filters import ChatFilterFactory
from .providers.pipelines import PipelineProviderFactory
from .services.agents_service import AgentsService
from .services.config_service import ConfigService
from .services.deployments_service import DeploymentsService
from .services.docker_service import DockerService
from .services.environment_service import AgentEnvironmentVariablesService
from .services.files_service import AgentFileSystemService
from .services.messages_service import AgentMessagesService
from .services.vcs_service import AgentsVcsService


def get_settings(request: Request) -> ManagerSettings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_docker_service(request: Request) -> DockerService:
    return request.app.state.docker_service


def get_provider_factory(request: Request) -> AgentProviderFactory:
    return request.app.state.provider_factory


def get_filter_factory(request: Request) -> ChatFilterFactory:
    return request.app.state.filter_factory


def get_pipeline_factory(request: Request) -> PipelineProviderFactory:
    return request.app.state.pipeline_factory


def get_session(database: Database = Depends(get_database)) -> Iterator[Session]:
    """Request-scoped session; committed when the handler returns."""
    with database.session() as session:
        yield session


def get_agents_service(
    session: Session = Depends(get_session),
    docker_service: DockerService = Depends(get_docker_service),
    provider_factory: AgentProviderFactory = Depends(get_provider_factory),
    pipeline_factory: PipelineProviderFactory = Depends(get_pipeline_factory),
    settings: ManagerSettings = Depends(get_settings),
) -> AgentsService:
    return AgentsService(session, docker_service, provider_factory, pipeline_factory, settings)


def get_messages_service(session: Session = Depends(get_session)) -> AgentMessagesService:
    return AgentMessagesService(session)


def get_files_service(
    session: Session = Depends(get_session),
    docker_service: DockerService = Depends(get_docker_service),
) -> AgentFileSystemService:
    return AgentFileSystemService(session, docker_service)


def get_vcs_service(
    session: Session = Depends(get_session),
    docker_service: DockerService = Depends(get_docker_service),
    settings: ManagerSettings = Depends(get_settings),
) -> AgentsVcsService:
    return AgentsVcsService(session, docker_service, settings)


def get_deployments_service(
    session: Session = Depends(get_session),
    pipeline_factory: PipelineProviderFactory = Depends(get_pipeline_factory),
) -> DeploymentsService:
    return DeploymentsService(session, pipeline_factory)


def get_environment_service(
    session: Session = Depends(get_session),
    docker_service: DockerService = Depends(get_docker_service),
) -> AgentEnvironmentVariablesService:
    return AgentEnvironmentVariablesService(session, docker_service)


def get_config_service(
    settings: ManagerSettings = Depends(get_settings),
    provider_factory: AgentProviderFactory = Depends(get_provider_factory),
) -> ConfigService:
    return ConfigService(settings, provider_factory)
