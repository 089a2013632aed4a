"""
Agent Services Test Fixtures
Shared fixtures for the agent-manager and agent-controller test suites.

Applications run against a SQLite file per test with migrations applied in
the lifespan; Docker is replaced by a MagicMock so nothing leaves the process.
"""
import base64
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from services.agent_controller.config.settings import ControllerSettings
from services.agent_controller.main import create_app as create_controller_app
from services.agent_manager.config.settings import ManagerSettings
from services.agent_manager.main import create_app as create_manager_app
from services.agent_manager.services.docker_service import DockerService
from shared.crypto import configure_field_encryption
from shared.db import Database

API_KEY = "test-api-key"
ENCRYPTION_KEY = base64.b64encode(b"k" * 32).decode("ascii")
REPOSITORY_URL = "https://github.com/example/workspace.git"


# ============================================================
# Settings
# ============================================================

@pytest.fixture
def manager_settings(tmp_path) -> ManagerSettings:
    """Manager settings with API-key auth and a throwaway SQLite file."""
    return ManagerSettings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'manager.db'}",
        STATIC_API_KEY=API_KEY,
        ENCRYPTION_KEY=ENCRYPTION_KEY,
        GIT_REPOSITORY_URL=REPOSITORY_URL,
        RATE_LIMIT_ENABLED="false",
        LOG_FORMAT="text",
    )


@pytest.fixture
def controller_settings(tmp_path) -> ControllerSettings:
    """Controller settings with API-key auth and fast reconnection."""
    return ControllerSettings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'controller.db'}",
        STATIC_API_KEY=API_KEY,
        ENCRYPTION_KEY=ENCRYPTION_KEY,
        RATE_LIMIT_ENABLED="false",
        LOG_FORMAT="text",
        SOCKET_RECONNECTION_DELAY_MS=10,
        SOCKET_RECONNECTION_DELAY_MAX_MS=20,
        SOCKET_WAIT_TIMEOUT_MS=100,
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture(autouse=True)
def field_encryption():
    """Every test encrypts secret columns with the same known key."""
    return configure_field_encryption(ENCRYPTION_KEY)


# ============================================================
# Databases (no HTTP layer)
# ============================================================

@pytest.fixture
def manager_db():
    from services.agent_manager.models import Base

    database = Database("sqlite://")
    Base.metadata.create_all(database.engine)
    yield database
    database.dispose()


@pytest.fixture
def controller_db():
    from services.agent_controller.models import Base

    database = Database("sqlite://")
    Base.metadata.create_all(database.engine)
    yield database
    database.dispose()


# ============================================================
# Applications
# ============================================================

@pytest.fixture
def docker_service() -> MagicMock:
    """DockerService double; container ids are predictable per call."""
    service = MagicMock(spec=DockerService)
    counter = iter(range(1, 1000))
    service.create_container.side_effect = lambda **kwargs: f"container{next(counter):04d}" + "0" * 56
    service.create_network.return_value = "network0001"
    service.get_published_port.return_value = 49152
    service.send_command_to_container.return_value = ""
    service.update_container.side_effect = lambda container_id, env: "recreated" + container_id[9:]
    return service


@pytest.fixture
def manager_client(manager_settings, docker_service):
    app = create_manager_app(manager_settings, docker_service=docker_service)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def controller_client(controller_settings):
    app = create_controller_app(controller_settings)
    with TestClient(app) as client:
        yield client


# ============================================================
# Markers for test categorization
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external deps)")
    config.addinivalue_line("markers", "integration: Integration tests (application and database wiring)")
