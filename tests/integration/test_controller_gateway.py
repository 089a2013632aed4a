"""
Clients WebSocket gateway integration tests.

The remote link is replaced by ``FakeLink`` so setClient/forward can be
exercised without a running agent-manager.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from services.agent_controller.config.settings import ControllerSettings
from services.agent_controller.gateway import ClientConnection, ClientsGateway
from services.agent_controller.models import Client
from services.agent_controller.repositories import ClientRepository
from services.agent_controller.services.credentials_service import ClientAgentCredentialsService
from shared.websocket import decode_event, encode_event

pytestmark = pytest.mark.integration

ENDPOINT = "https://manager.example.com"
AGENT_ID = uuid.UUID("7b0c1a52-4f61-4c3e-9a0d-2d3b8f1e6a11")


class FakeLink:
    """In-memory remote ``/agents`` gateway that knows one agent password."""

    instances: list["FakeLink"] = []
    password = "p4ss"

    def __init__(self, url, authorization, on_event, on_reconnected=None, **options):
        self.url = url
        self.authorization = authorization
        self.on_event = on_event
        self.on_reconnected = on_reconnected
        self.options = options
        self.connected = False
        self.requests: list[tuple[str, dict]] = []
        self.emitted: list[tuple[str, dict]] = []
        FakeLink.instances.append(self)

    async def connect(self):
        self.connected = True

    async def wait_connected(self, timeout):
        return self.connected

    async def close(self):
        self.connected = False

    async def request(self, event, data, replies, timeout):
        self.requests.append((event, data))
        if data.get("password") == self.password:
            return "loginSuccess", {"message": "Welcome!", "agentId": data["agentId"]}
        return "loginError", {"message": "Invalid credentials"}

    async def emit(self, event, data=None):
        self.emitted.append((event, data))
        if event == "chat":
            await self.on_event("chatMessage", {"from": "agent", "response": {"result": "echo"}})


@pytest.fixture(autouse=True)
def reset_links():
    FakeLink.instances = []
    yield


@pytest.fixture
def app(controller_client):
    controller_client.app.state.gateway.link_factory = FakeLink
    return controller_client.app


@pytest.fixture
def client_id(controller_client, auth_headers, app):
    response = controller_client.post(
        "/api/clients",
        json={"name": "edge-1", "endpoint": ENDPOINT, "authenticationType": "api_key", "apiKey": "remote-key"},
        headers=auth_headers,
    )
    return response.json()["id"]


@pytest.fixture
def stored_password(app, client_id):
    with app.state.database.session() as session:
        ClientAgentCredentialsService(session).save(uuid.UUID(client_id), AGENT_ID, FakeLink.password)


def send(ws, event, data=None):
    ws.send_text(encode_event(event, data))


def receive(ws):
    return decode_event(ws.receive_text())


class TestSetClient:
    """Selecting the remote client."""

    def test_missing_token_closes_4001(self, controller_client):
        with controller_client.websocket_connect("/clients") as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_text()
        assert exc.value.code == 4001

    def test_set_client_connects_link(self, controller_client, auth_headers, client_id):
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            assert receive(ws) == ("setClientSuccess", {"message": "Client context set", "clientId": client_id})

            send(ws, "setClient", {"clientId": client_id})
            assert receive(ws)[1]["message"] == "Client context already set"

        link = FakeLink.instances[0]
        assert link.url == "wss://manager.example.com:8080/agents"
        assert link.authorization == "Bearer remote-key"
        assert len(FakeLink.instances) == 1

    def test_unknown_client(self, controller_client, auth_headers, app):
        missing = str(uuid.uuid4())
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": missing})
            assert receive(ws) == ("error", {"message": f"Client with ID '{missing}' not found"})

    def test_client_id_required(self, controller_client, auth_headers, app):
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {})
            assert receive(ws) == ("error", {"message": "clientId is required"})


class TestForward:
    """Relaying events to the remote gateway."""

    def test_forward_requires_client(self, controller_client, auth_headers, app):
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "forward", {"event": "chat", "payload": {"message": "hi"}})
            assert receive(ws) == ("error", {"message": "No client selected. Call setClient first."})

    def test_chat_auto_logs_in(self, controller_client, auth_headers, client_id, stored_password):
        """The stored password is used once, then events are relayed both ways."""
        agent_id = str(AGENT_ID)
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            receive(ws)

            for text in ("hi", "again"):
                send(ws, "forward", {"event": "chat", "payload": {"message": text}, "agentId": agent_id})
                assert receive(ws) == ("chatMessage", {"from": "agent", "response": {"result": "echo"}})
                assert receive(ws) == ("forwardAck", {"received": True, "event": "chat"})

        link = FakeLink.instances[0]
        assert link.requests == [("login", {"agentId": agent_id, "password": "p4ss"})]
        assert link.emitted == [("chat", {"message": "hi"}), ("chat", {"message": "again"})]

    def test_explicit_login_uses_stored_password(self, controller_client, auth_headers, client_id, stored_password):
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            receive(ws)
            send(ws, "forward", {"event": "login", "agentId": str(AGENT_ID)})
            assert receive(ws) == ("forwardAck", {"received": True, "event": "login"})
        assert FakeLink.instances[0].emitted == []

    def test_login_without_credentials(self, controller_client, auth_headers, client_id):
        unknown = str(uuid.uuid4())
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            receive(ws)
            send(ws, "forward", {"event": "login", "agentId": unknown})
            assert receive(ws) == ("error", {"message": f"No stored credentials for agent {unknown}"})

    def test_rejected_login(self, controller_client, auth_headers, client_id, app):
        with app.state.database.session() as session:
            ClientAgentCredentialsService(session).save(uuid.UUID(client_id), AGENT_ID, "stale")
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            receive(ws)
            send(ws, "forward", {"event": "chat", "payload": {"message": "hi"}, "agentId": str(AGENT_ID)})
            assert receive(ws) == ("error", {"message": "Invalid credentials"})

    def test_event_required(self, controller_client, auth_headers, client_id):
        with controller_client.websocket_connect("/clients", headers=auth_headers) as ws:
            send(ws, "setClient", {"clientId": client_id})
            receive(ws)
            send(ws, "forward", {"payload": {}})
            assert receive(ws) == ("error", {"message": "event is required"})


class TestRestoreLogins:
    """Logins are replayed after the remote link reconnects."""

    @pytest.mark.asyncio
    async def test_restore(self, controller_db):
        with controller_db.session() as session:
            client = ClientRepository.save(
                session,
                Client(name="edge", endpoint=ENDPOINT, authentication_type="api_key", api_key="remote-key"),
            )
            client_id = client.id
            ClientAgentCredentialsService(session).save(client_id, AGENT_ID, FakeLink.password)

        gateway = ClientsGateway(
            controller_db, MagicMock(), MagicMock(), ControllerSettings(), link_factory=FakeLink
        )
        websocket = MagicMock(client_state=WebSocketState.CONNECTED, send_text=AsyncMock())
        link = FakeLink("wss://manager.example.com:8080/agents", "Bearer remote-key", on_event=AsyncMock())
        gone = uuid.uuid4()
        gateway.connections["s1"] = ClientConnection(
            websocket=websocket, client_id=client_id, link=link, logged_in_agents={AGENT_ID, gone}
        )

        await gateway._restore_logins("s1")

        assert link.requests == [("login", {"agentId": str(AGENT_ID), "password": "p4ss"})]
        assert gateway.connections["s1"].logged_in_agents == {AGENT_ID}


class TestRemoteStatus:
    """Link status events as seen by the local socket."""

    @pytest.fixture
    def gateway(self, controller_db):
        with controller_db.session() as session:
            client = ClientRepository.save(
                session,
                Client(name="edge", endpoint=ENDPOINT, authentication_type="api_key", api_key="remote-key"),
            )
            client_id = client.id
        gateway = ClientsGateway(controller_db, MagicMock(), MagicMock(), ControllerSettings(), link_factory=FakeLink)
        websocket = MagicMock(client_state=WebSocketState.CONNECTED, send_text=AsyncMock())
        gateway.connections["s1"] = ClientConnection(websocket=websocket, client_id=client_id)
        return gateway

    def sent(self, gateway):
        return [decode_event(call.args[0]) for call in gateway.connections["s1"].websocket.send_text.call_args_list]

    @pytest.mark.asyncio
    async def test_status_events_carry_client_id(self, gateway):
        client_id = gateway.connections["s1"].client_id
        link = gateway._new_link("s1", client_id, "wss://manager.example.com:8080/agents", "Bearer remote-key")

        await link.on_event("remoteReconnectError", {"error": "refused", "attempt": 1})
        await link.on_event("chatMessage", {"from": "agent"})

        assert self.sent(gateway) == [
            ("remoteReconnectError", {"error": "refused", "attempt": 1, "clientId": str(client_id)}),
            ("chatMessage", {"from": "agent"}),
        ]

    @pytest.mark.asyncio
    async def test_reconnect_completes_set_client(self, gateway):
        """After logins are replayed the client context is confirmed again."""
        connection = gateway.connections["s1"]
        link = gateway._new_link("s1", connection.client_id, "wss://manager.example.com:8080/agents", "Bearer k")
        connection.link = link

        await link.on_reconnected()

        assert self.sent(gateway) == [
            ("setClientSuccess", {"message": "Client context set", "clientId": str(connection.client_id)}),
        ]
