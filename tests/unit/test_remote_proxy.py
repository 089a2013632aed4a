"""
Tests for the client registry and the HTTP proxy to remote agent-managers.
"""
import uuid
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from services.agent_controller.config.settings import ControllerSettings
from services.agent_controller.proxy import (
    ClientAgentDeploymentsProxyService,
    ClientAgentFileSystemProxyService,
    ClientAgentProxyService,
)
from services.agent_controller.proxy.base import RemoteManagerClient
from services.agent_controller.schemas import AuthenticationType, CreateClientRequest, UpdateClientRequest
from services.agent_controller.services.clients_service import ClientsService
from services.agent_controller.services.credentials_service import ClientAgentCredentialsService
from services.agent_controller.services.keycloak_token import KeycloakTokenService
from shared.errors import BadRequestError, NotFoundError

ENDPOINT = "https://manager.example.com"


@pytest.fixture
def session(controller_db):
    with controller_db.session() as session:
        yield session


@pytest.fixture
def token_service():
    service = MagicMock(spec=KeycloakTokenService)
    service.get_access_token.return_value = "kc-token"
    return service


@pytest.fixture
def remote():
    return RemoteManagerClient(timeout=600.0)


@pytest.fixture
def settings():
    return ControllerSettings(KEYCLOAK_AUTH_SERVER_URL="https://sso.example.com", KEYCLOAK_REALM="agenstra")


@pytest.fixture
def clients(session, token_service, remote, settings):
    return ClientsService(session, token_service, remote, settings)


@pytest.fixture
def api_key_client(clients):
    return clients.create(
        CreateClientRequest(
            name="edge-1", endpoint=ENDPOINT + "/", authentication_type=AuthenticationType.API_KEY, api_key="remote-key"
        )
    )


class TestRemoteManagerClient:
    """Upstream failures mapped onto controller errors."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_forwards_authorization(self, remote):
        route = respx.get(f"{ENDPOINT}/api/agents").mock(return_value=httpx.Response(200, json=[{"id": "a"}]))
        assert await remote.request("GET", f"{ENDPOINT}/api/agents", "Bearer k") == [{"id": "a"}]
        assert route.calls.last.request.headers["Authorization"] == "Bearer k"

    @pytest.mark.asyncio
    @respx.mock
    async def test_not_found_keeps_message(self, remote):
        respx.get(f"{ENDPOINT}/api/agents/x").mock(
            return_value=httpx.Response(404, json={"statusCode": 404, "message": "Agent with ID 'x' not found"})
        )
        with pytest.raises(NotFoundError, match="Agent with ID 'x' not found"):
            await remote.request("GET", f"{ENDPOINT}/api/agents/x", "Bearer k")

    @pytest.mark.asyncio
    @respx.mock
    async def test_bad_request_keeps_message(self, remote):
        respx.post(f"{ENDPOINT}/api/agents").mock(
            return_value=httpx.Response(400, json={"message": ["name must not be empty", "bad type"]})
        )
        with pytest.raises(BadRequestError, match="name must not be empty, bad type"):
            await remote.request("POST", f"{ENDPOINT}/api/agents", "Bearer k", json={})

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_status_prefixed(self, remote):
        """Other failures become 'Request failed: ...' with the status text as fallback."""
        respx.get(f"{ENDPOINT}/api/agents").mock(return_value=httpx.Response(502, text="<html>bad gateway</html>"))
        with pytest.raises(BadRequestError, match="Request failed: Bad Gateway"):
            await remote.request("GET", f"{ENDPOINT}/api/agents", "Bearer k")

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_message(self, remote):
        respx.get(f"{ENDPOINT}/api/agents").mock(side_effect=httpx.ReadTimeout("read timed out"))
        with pytest.raises(BadRequestError, match="Request timed out after 10 minutes"):
            await remote.request("GET", f"{ENDPOINT}/api/agents", "Bearer k")

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, remote):
        respx.get(f"{ENDPOINT}/api/agents").mock(side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(BadRequestError, match="Failed to connect to client endpoint: connection refused"):
            await remote.request("GET", f"{ENDPOINT}/api/agents", "Bearer k")

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_content(self, remote):
        respx.delete(f"{ENDPOINT}/api/agents/x").mock(return_value=httpx.Response(204))
        assert await remote.request("DELETE", f"{ENDPOINT}/api/agents/x", "Bearer k") is None
        await remote.close()


class TestClientsService:
    """Client registration and authentication."""

    def test_generated_api_key(self, clients):
        """An API key is generated when none is given and returned once."""
        created = clients.create(
            CreateClientRequest(name="edge", endpoint=ENDPOINT, authentication_type=AuthenticationType.API_KEY)
        )
        assert len(created.api_key) == 32
        assert created.api_key.isalnum()

    def test_keycloak_requires_credentials(self, clients):
        with pytest.raises(BadRequestError, match="Keycloak client ID and secret are required"):
            clients.create(
                CreateClientRequest(
                    name="edge", endpoint=ENDPOINT, authentication_type="keycloak", keycloak_client_id="manager"
                )
            )

    def test_duplicate_name(self, clients, api_key_client):
        with pytest.raises(BadRequestError, match="Client with name 'edge-1' already exists"):
            clients.create(
                CreateClientRequest(name="edge-1", endpoint=ENDPOINT, authentication_type=AuthenticationType.API_KEY)
            )

    def test_endpoint_must_be_url(self):
        with pytest.raises(ValueError, match="Endpoint must be a valid URL"):
            CreateClientRequest(name="edge", endpoint="manager.local", authentication_type="api_key")

    @pytest.mark.asyncio
    async def test_api_key_header(self, clients, api_key_client):
        assert await clients.get_auth_header(api_key_client.id) == "Bearer remote-key"

    @pytest.mark.asyncio
    async def test_keycloak_token(self, clients, token_service):
        """Keycloak clients use a client-credentials token from the client's realm or the default."""
        created = clients.create(
            CreateClientRequest(
                name="edge",
                endpoint=ENDPOINT,
                authentication_type="keycloak",
                keycloak_client_id="manager",
                keycloak_client_secret="secret",
            )
        )
        assert await clients.get_access_token(created.id) == "kc-token"
        token_service.get_access_token.assert_awaited_once_with(
            "https://sso.example.com", "agenstra", "manager", "secret"
        )

    @pytest.mark.asyncio
    async def test_keycloak_without_server(self, session, token_service, remote):
        service = ClientsService(session, token_service, remote, ControllerSettings(KEYCLOAK_REALM="agenstra"))
        created = service.create(
            CreateClientRequest(
                name="edge",
                endpoint=ENDPOINT,
                authentication_type="keycloak",
                keycloak_client_id="manager",
                keycloak_client_secret="secret",
            )
        )
        with pytest.raises(BadRequestError, match="KEYCLOAK_AUTH_SERVER_URL"):
            await service.get_access_token(created.id)

    @pytest.mark.asyncio
    async def test_unknown_client(self, clients):
        with pytest.raises(NotFoundError, match="Client with ID"):
            await clients.get_access_token(uuid.uuid4())

    @pytest.mark.asyncio
    @respx.mock
    async def test_config_fetched(self, clients, api_key_client):
        respx.get(f"{ENDPOINT}/api/config").mock(
            return_value=httpx.Response(200, json={"gitRepositoryUrl": "https://github.com/a/b.git", "agentTypes": []})
        )
        found = await clients.find_one(api_key_client.id)
        assert found.config["gitRepositoryUrl"] == "https://github.com/a/b.git"

    @pytest.mark.asyncio
    @respx.mock
    async def test_config_unreachable_is_none(self, clients, api_key_client):
        """An unreachable manager yields config None instead of failing."""
        respx.get(f"{ENDPOINT}/api/config").mock(side_effect=httpx.ConnectError("refused"))
        found = await clients.find_one(api_key_client.id)
        assert found.config is None
        assert found.name == "edge-1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_switch_to_keycloak_requires_credentials(self, clients, api_key_client):
        with pytest.raises(BadRequestError, match="Keycloak client ID and secret are required"):
            await clients.update(api_key_client.id, UpdateClientRequest(authentication_type="keycloak"))

    @pytest.mark.asyncio
    @respx.mock
    async def test_switch_to_api_key_generates_key(self, clients, session):
        respx.get(f"{ENDPOINT}/api/config").mock(return_value=httpx.Response(200, json={}))
        created = clients.create(
            CreateClientRequest(
                name="edge",
                endpoint=ENDPOINT,
                authentication_type="keycloak",
                keycloak_client_id="manager",
                keycloak_client_secret="secret",
            )
        )
        updated = await clients.update(created.id, UpdateClientRequest(authentication_type="api_key"))
        assert updated.authentication_type == AuthenticationType.API_KEY
        assert len(clients.get_entity(created.id).api_key) == 32


class TestProxies:
    """Per-resource proxies."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_agent_stores_password(self, clients, remote, api_key_client, session):
        """The password returned on creation is stored for WebSocket auto-login."""
        agent_id = uuid.uuid4()
        route = respx.post(f"{ENDPOINT}/api/agents").mock(
            return_value=httpx.Response(201, json={"id": str(agent_id), "name": "a", "password": "p4ss"})
        )
        proxy = ClientAgentProxyService(clients, remote)

        created = await proxy.create_client_agent(api_key_client.id, {"name": "a"})

        assert created["password"] == "p4ss"
        assert route.calls.last.request.headers["Authorization"] == "Bearer remote-key"
        stored = ClientAgentCredentialsService(session).get(api_key_client.id, agent_id)
        assert stored.password == "p4ss"

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_agent_forgets_password(self, clients, remote, api_key_client, session):
        agent_id = uuid.uuid4()
        ClientAgentCredentialsService(session).save(api_key_client.id, agent_id, "p4ss")
        respx.delete(f"{ENDPOINT}/api/agents/{agent_id}").mock(return_value=httpx.Response(204))

        await ClientAgentProxyService(clients, remote).delete_client_agent(api_key_client.id, agent_id)

        assert ClientAgentCredentialsService(session).get(api_key_client.id, agent_id) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_repository_id_is_one_segment(self, clients, remote, api_key_client):
        """owner/repo is percent-encoded into a single path segment."""
        route = respx.get(url__regex=r".*/branches$").mock(return_value=httpx.Response(200, json=[]))
        agent_id = uuid.uuid4()
        await ClientAgentDeploymentsProxyService(clients, remote).list_branches(api_key_client.id, agent_id, "acme/app")
        assert route.calls.last.request.url.raw_path.endswith(b"/deployments/repositories/acme%2Fapp/branches")

    @pytest.mark.asyncio
    @respx.mock
    async def test_file_path_keeps_slashes(self, clients, remote, api_key_client):
        route = respx.get(url__regex=r".*/files/.*").mock(return_value=httpx.Response(200, json={"content": ""}))
        agent_id = uuid.uuid4()
        await ClientAgentFileSystemProxyService(clients, remote).read_file(api_key_client.id, agent_id, "/src/my file.py")
        assert route.calls.last.request.url.raw_path.endswith(b"/files/src/my%20file.py")
