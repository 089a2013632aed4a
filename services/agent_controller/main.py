"""
Agent Controller - FastAPI application.

- Core: app factory, lifespan (migrations, token cache, remote HTTP client)
- Routers: clients, provisioning, and agents/files/vcs/deployments/environment proxied to clients
- WebSocket: /clients relay gateway, served on WEBSOCKET_PORT as well
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from shared.app import configure_app
from shared.db import Database, run_migrations

from .config.settings import ControllerSettings, get_settings
from .gateway import ClientsGateway
from .gateway import router as gateway_router
from .migrations import MIGRATIONS_DIR
from .provisioning import DigitalOceanProvider, HetznerProvider, ProvisioningProviderFactory
from .proxy import RemoteManagerClient
from .routers import (
    agents_router,
    clients_router,
    deployments_router,
    environment_router,
    files_router,
    provisioning_router,
    vcs_router,
)
from .services.keycloak_token import KeycloakTokenService

logger = logging.getLogger(__name__)


def build_provisioning_factory(settings: ControllerSettings) -> ProvisioningProviderFactory:
    factory = ProvisioningProviderFactory()
    factory.register_provider(HetznerProvider(settings.HETZNER_API_TOKEN))
    factory.register_provider(DigitalOceanProvider(settings.DIGITALOCEAN_API_TOKEN))
    return factory


def create_app(settings: ControllerSettings | None = None) -> FastAPI:
    """Build the agent-controller application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Agent Controller...")
        database = Database(settings.DATABASE_URL)
        if settings.DB_RUN_MIGRATIONS:
            await asyncio.to_thread(run_migrations, MIGRATIONS_DIR, database.engine)

        token_service = KeycloakTokenService()
        remote_client = RemoteManagerClient(timeout=settings.request_timeout_seconds)
        provisioning_factory = build_provisioning_factory(settings)

        app.state.database = database
        app.state.token_service = token_service
        app.state.remote_client = remote_client
        app.state.provisioning_factory = provisioning_factory
        app.state.gateway = ClientsGateway(database, token_service, remote_client, settings)
        logger.info("✅ Agent Controller ready")

        yield

        await app.state.gateway.close_all()
        await remote_client.close()
        await provisioning_factory.close()
        database.dispose()
        logger.info("Agent Controller shutdown complete")

    app = FastAPI(title="Agent Controller", version="1.0.0", lifespan=lifespan)
    configure_app(app, settings)

    # provisioning paths sit under /api/clients and must match before /{client_id}
    app.include_router(provisioning_router)
    app.include_router(clients_router)
    app.include_router(agents_router)
    app.include_router(files_router)
    app.include_router(vcs_router)
    app.include_router(deployments_router)
    app.include_router(environment_router)
    app.include_router(gateway_router)
    return app


async def serve(app: FastAPI, settings: ControllerSettings) -> None:
    """Serve HTTP on PORT and, when it differs, the same app on WEBSOCKET_PORT."""
    log_level = settings.LOG_LEVEL.lower()
    servers = [uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=log_level))]
    if settings.WEBSOCKET_PORT != settings.PORT:
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
