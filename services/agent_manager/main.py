"""
Agent Manager - FastAPI application.

- Core: app factory, lifespan (migrations, Docker, provider registries)
- Routers: agents, files, vcs, deployments, environment, config
- WebSocket: /agents chat gateway, served on WEBSOCKET_PORT as well
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from shared.app import configure_app
from shared.db import Database, run_migrations

from .config.settings import ManagerSettings, get_settings
from .gateway import AgentsGateway
from .gateway import router as gateway_router
from .migrations import MIGRATIONS_DIR
from .providers.agents import AgentProviderFactory, CursorAgentProvider, OpenCodeAgentProvider
from .providers.chat_filters import ChatFilterFactory, IncomingChatFilter, NoopChatFilter, OutgoingChatFilter
from .providers.pipelines import GitHubProvider, GitLabProvider, PipelineProviderFactory
from .routers import (
    agents_router,
    config_router,
    deployments_router,
    environment_router,
    files_router,
    vcs_router,
)
from .services.docker_service import DockerService

logger = logging.getLogger(__name__)


def build_provider_factory(docker_service: DockerService, settings: ManagerSettings) -> AgentProviderFactory:
    factory = AgentProviderFactory()
    factory.register_provider(CursorAgentProvider(docker_service, settings))
    factory.register_provider(OpenCodeAgentProvider(docker_service, settings))
    return factory


def build_filter_factory() -> ChatFilterFactory:
    factory = ChatFilterFactory()
    factory.register_filter(NoopChatFilter())
    factory.register_filter(IncomingChatFilter())
    factory.register_filter(OutgoingChatFilter())
    return factory


def build_pipeline_factory() -> PipelineProviderFactory:
    factory = PipelineProviderFactory()
    factory.register_provider(GitHubProvider())
    factory.register_provider(GitLabProvider())
    return factory


def create_app(settings: ManagerSettings | None = None, docker_service: DockerService | None = None) -> FastAPI:
    """Build the agent-manager application.

    ``docker_service`` may be injected (tests); otherwise one is created for
    ``DOCKER_HOST`` or the environment's default socket.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Agent Manager...")
        database = Database(settings.DATABASE_URL)
        if settings.DB_RUN_MIGRATIONS:
            await asyncio.to_thread(run_migrations, MIGRATIONS_DIR, database.engine)

        docker = docker_service or DockerService(
            base_url=settings.DOCKER_HOST or None, default_image=settings.AGENT_DEFAULT_IMAGE
        )
        provider_factory = build_provider_factory(docker, settings)
        filter_factory = build_filter_factory()

        app.state.database = database
        app.state.docker_service = docker
        app.state.provider_factory = provider_factory
        app.state.filter_factory = filter_factory
        app.state.pipeline_factory = build_pipeline_factory()
        app.state.gateway = AgentsGateway(database, docker, provider_factory, filter_factory, settings)
        logger.info("✅ Agent Manager ready")

        yield

        database.dispose()
        logger.info("Agent Manager shutdown complete")

    app = FastAPI(title="Agent Manager", version="1.0.0", lifespan=lifespan)
    configure_app(app, settings)

    app.include_router(agents_router)
    app.include_router(files_router)
    app.include_router(vcs_router)
    app.include_router(deployments_router)
    app.include_router(environment_router)
    app.include_router(config_router)
    app.include_router(gateway_router)
    return app


async def serve(app: FastAPI, settings: ManagerSettings) -> None:
    """Serve HTTP on PORT and, when it differs, the same app on WEBSOCKET_PORT."""
    log_level = settings.LOG_LEVEL.lower()
    servers = [uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=log_level))]
    if settings.WEBSOCKET_PORT != settings.PORT:
        # The lifespan already runs on the primary server
        ws_config = uvicorn.Config(
            app, host=settings.HOST, port=settings.WEBSOCKET_PORT, log_level=log_level, lifespan="off"
        )
        servers.append(uvicorn.Server(ws_config))
    await asyncio.gather(*(server.serve() for server in servers))


def main() -> None:
    settings = get_settings()
    asyncio.run(serve(create_app(settings), settings))


if __name__ == "__main__":
    main()
