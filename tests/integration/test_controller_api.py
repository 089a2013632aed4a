"""
Agent Controller API integration tests.

Remote agent-managers are simulated with respx; the controller's own
database is a migrated SQLite file.
"""
import uuid

import httpx
import pytest
import respx

pytestmark = pytest.mark.integration

ENDPOINT = "https://manager.example.com"


@pytest.fixture
def remote():
    with respx.mock(base_url=ENDPOINT, assert_all_called=False) as router:
        router.get("/api/config").mock(
            return_value=httpx.Response(200, json={"gitRepositoryUrl": "https://github.com/a/b.git", "agentTypes": []})
        )
        yield router


@pytest.fixture
def client(controller_client, auth_headers):
    response = controller_client.post(
        "/api/clients",
        json={"name": "edge-1", "endpoint": ENDPOINT, "authenticationType": "api_key", "apiKey": "remote-key"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


class TestClientsApi:
    """Client registry over HTTP."""

    def test_requires_auth(self, controller_client):
        assert controller_client.get("/api/clients").status_code == 401

    def test_create_returns_api_key(self, client):
        assert client["name"] == "edge-1"
        assert client["authenticationType"] == "api_key"
        assert client["apiKey"] == "remote-key"

    def test_get_includes_remote_config(self, controller_client, auth_headers, client, remote):
        body = controller_client.get(f"/api/clients/{client['id']}", headers=auth_headers).json()
        assert body["config"]["gitRepositoryUrl"] == "https://github.com/a/b.git"
        assert "apiKey" not in body
        assert remote.calls.last.request.headers["Authorization"] == "Bearer remote-key"

    def test_list(self, controller_client, auth_headers, client, remote):
        listed = controller_client.get("/api/clients", headers=auth_headers).json()
        assert [c["id"] for c in listed] == [client["id"]]

    def test_invalid_endpoint(self, controller_client, auth_headers):
        response = controller_client.post(
            "/api/clients",
            json={"name": "edge", "endpoint": "not a url", "authenticationType": "api_key"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_delete(self, controller_client, auth_headers, client):
        assert controller_client.delete(f"/api/clients/{client['id']}", headers=auth_headers).status_code == 204
        missing = controller_client.get(f"/api/clients/{client['id']}", headers=auth_headers)
        assert missing.status_code == 404


class TestAgentsProxyApi:
    """Agent requests forwarded to the client's manager."""

    def test_create_and_list(self, controller_client, auth_headers, client, remote):
        agent_id = str(uuid.uuid4())
        create = remote.post("/api/agents").mock(
            return_value=httpx.Response(201, json={"id": agent_id, "name": "alpha", "password": "p4ss"})
        )
        remote.get("/api/agents").mock(return_value=httpx.Response(200, json=[{"id": agent_id, "name": "alpha"}]))
        base = f"/api/clients/{client['id']}/agents"

        created = controller_client.post(base, json={"name": "alpha"}, headers=auth_headers)
        listed = controller_client.get(base, headers=auth_headers)

        assert created.status_code == 201
        assert created.json()["password"] == "p4ss"
        assert create.calls.last.request.headers["Authorization"] == "Bearer remote-key"
        assert listed.json() == [{"id": agent_id, "name": "alpha"}]

    def test_remote_not_found_passes_through(self, controller_client, auth_headers, client, remote):
        agent_id = uuid.uuid4()
        remote.get(f"/api/agents/{agent_id}").mock(
            return_value=httpx.Response(404, json={"statusCode": 404, "message": f"Agent with ID '{agent_id}' not found"})
        )
        response = controller_client.get(f"/api/clients/{client['id']}/agents/{agent_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["message"] == f"Agent with ID '{agent_id}' not found"

    def test_unreachable_manager(self, controller_client, auth_headers, client, remote):
        remote.get("/api/agents").mock(side_effect=httpx.ConnectError("connection refused"))
        response = controller_client.get(f"/api/clients/{client['id']}/agents", headers=auth_headers)
        assert response.status_code == 400
        assert "Failed to connect to client endpoint" in response.json()["message"]

    def test_unknown_client(self, controller_client, auth_headers):
        response = controller_client.get(f"/api/clients/{uuid.uuid4()}/agents", headers=auth_headers)
        assert response.status_code == 404


class TestProvisioningApi:
    def test_providers(self, controller_client, auth_headers):
        """Both cloud providers are registered."""
        providers = controller_client.get("/api/clients/provisioning/providers", headers=auth_headers).json()
        assert providers == [
            {"type": "hetzner", "displayName": "Hetzner Cloud"},
            {"type": "digital-ocean", "displayName": "DigitalOcean"},
        ]

    def test_unknown_provider(self, controller_client, auth_headers):
        response = controller_client.get(
            "/api/clients/provisioning/providers/linode/server-types", headers=auth_headers
        )
        assert response.status_code == 400
        assert "Available types: hetzner, digital-ocean" in response.json()["message"]
