"""
Common FastAPI wiring for both services: logging, CORS, rate limiting,
error handlers and the public health route.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import ServiceSettings
from shared.crypto import configure_field_encryption
from shared.errors import register_exception_handlers
from shared.health import router as health_router
from shared.logging import setup_structured_logging
from shared.middleware import RateLimitMiddleware

logger = logging.getLogger(__name__)


def configure_app(app: FastAPI, settings: ServiceSettings) -> None:
    """Attach middleware, handlers and shared routers to ``app``."""
    setup_structured_logging(settings.SERVICE_NAME, settings.LOG_LEVEL, settings.LOG_FORMAT)
    configure_field_encryption(settings.ENCRYPTION_KEY)

    app.state.settings = settings

    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware, settings=settings)

    register_exception_handlers(app)
    app.include_router(health_router)
    logger.info("✅ %s configured (environment=%s)", settings.SERVICE_NAME, settings.ENVIRONMENT)
