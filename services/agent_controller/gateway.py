"""
Clients WebSocket Gateway - relay to remote agent-managers over ``/clients``.

A local socket first selects a client (``setClient``); the gateway then
opens a link to that client's ``/agents`` gateway and relays events both
ways. Agent logins use the passwords stored when the agent was created
through the controller, so the console never sees them.

Events handled:
    setClient {clientId}
    forward   {event, payload, agentId?}
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from shared.auth import authenticate_websocket
from shared.db import Database
from shared.errors import APIException
from shared.websocket import decode_event, send_event

from .config.settings import ControllerSettings
from .proxy import RemoteManagerClient
from .remote_link import RemoteAgentLink, agents_ws_url
from .services.clients_service import ClientsService
from .services.credentials_service import ClientAgentCredentialsService
from .services.keycloak_token import KeycloakTokenService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

LOGIN_TIMEOUT = 5.0
LOGIN_REPLIES = {"loginSuccess", "loginError"}
REMOTE_STATUS_EVENTS = {
    "remoteDisconnected",
    "remoteReconnecting",
    "remoteReconnectError",
    "remoteReconnected",
    "remoteReconnectFailed",
}


class ForwardError(Exception):
    """Reported to the local socket as an ``error`` event."""


@dataclass
class ClientConnection:
    websocket: WebSocket
    client_id: uuid.UUID | None = None
    link: RemoteAgentLink | None = None
    logged_in_agents: set[uuid.UUID] = field(default_factory=set)
    setting_client: bool = False


class ClientsGateway:
    def __init__(
        self,
        database: Database,
        token_service: KeycloakTokenService,
        remote_client: RemoteManagerClient,
        settings: ControllerSettings,
        link_factory: Callable[..., RemoteAgentLink] = RemoteAgentLink,
    ):
        self.database = database
        self.token_service = token_service
        self.remote_client = remote_client
        self.settings = settings
        self.link_factory = link_factory
        self.connections: dict[str, ClientConnection] = {}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def handle(self, websocket: WebSocket) -> None:
        await websocket.accept()
        if await authenticate_websocket(websocket, self.settings) is None:
            return

        socket_id = uuid.uuid4().hex
        self.connections[socket_id] = ClientConnection(websocket=websocket)
        logger.info(f"Client connected: {socket_id}")

        try:
            while True:
                raw = await websocket.receive_text()
                event, data = decode_event(raw)
                if event is None:
                    await send_event(websocket, "error", {"message": "Invalid message format"})
                    continue
                await self.dispatch(socket_id, event, data)
        except WebSocketDisconnect:
            pass
        finally:
            await self.disconnect(socket_id)

    async def disconnect(self, socket_id: str) -> None:
        connection = self.connections.pop(socket_id, None)
        if connection is None:
            return
        if connection.link is not None:
            await connection.link.close()
        logger.info(f"Client disconnected: {socket_id}")

    async def close_all(self) -> None:
        for socket_id in list(self.connections):
            await self.disconnect(socket_id)

    async def dispatch(self, socket_id: str, event: str, data: Any) -> None:
        handlers = {"setClient": self.handle_set_client, "forward": self.handle_forward}
        handler = handlers.get(event)
        if handler is None:
            await self._emit(socket_id, "error", {"message": f"Unknown event: {event}"})
            return
        await handler(socket_id, data if isinstance(data, dict) else {})

    async def _emit(self, socket_id: str, event: str, data: Any) -> None:
        connection = self.connections.get(socket_id)
        if connection is not None:
            await send_event(connection.websocket, event, data)

    # =========================================================================
    # setClient
    # =========================================================================

    async def _link_target(self, client_id: uuid.UUID) -> tuple[str, str]:
        """Remote ``/agents`` URL and Authorization header for a client."""
        with self.database.session() as session:
            service = ClientsService(session, self.token_service, self.remote_client, self.settings)
            client = service.get_entity(client_id)
            url = agents_ws_url(client.endpoint, client.agent_ws_port, self.settings.CLIENTS_REMOTE_WS_PORT)
            return url, await service.get_auth_header(client_id)

    def _new_link(self, socket_id: str, client_id: uuid.UUID, url: str, authorization: str) -> RemoteAgentLink:
        async def relay(event: str, data: Any) -> None:
            if event in REMOTE_STATUS_EVENTS:
                data = {**(data or {}), "clientId": str(client_id)}
            await self._emit(socket_id, event, data)

        async def restore() -> None:
            await self._restore_logins(socket_id)
            await self._emit(
                socket_id, "setClientSuccess", {"message": "Client context set", "clientId": str(client_id)}
            )

        return self.link_factory(
            url,
            authorization,
            on_event=relay,
            on_reconnected=restore,
            reconnection_attempts=self.settings.SOCKET_RECONNECTION_ATTEMPTS,
            reconnection_delay=self.settings.SOCKET_RECONNECTION_DELAY_MS / 1000,
            reconnection_delay_max=self.settings.SOCKET_RECONNECTION_DELAY_MAX_MS / 1000,
        )

    async def handle_set_client(self, socket_id: str, data: dict) -> None:
        raw_id = data.get("clientId")
        if not raw_id:
            await self._emit(socket_id, "error", {"message": "clientId is required"})
            return

        connection = self.connections[socket_id]
        if connection.setting_client:
            logger.debug(f"setClient already in progress for socket {socket_id}")
            return

        try:
            client_id = uuid.UUID(str(raw_id))
        except ValueError:
            await self._emit(socket_id, "error", {"message": f"Client with ID '{raw_id}' not found"})
            return

        if connection.client_id == client_id and connection.link is not None and connection.link.connected:
            await self._emit(
                socket_id, "setClientSuccess", {"message": "Client context already set", "clientId": str(client_id)}
            )
            return

        connection.setting_client = True
        try:
            if connection.link is not None:
                await connection.link.close()
                connection.link = None
            connection.logged_in_agents.clear()
            connection.client_id = client_id

            url, authorization = await self._link_target(client_id)
            link = self._new_link(socket_id, client_id, url, authorization)
            await link.connect()
            connection.link = link
        except APIException as e:
            await self._emit(socket_id, "error", {"message": e.message})
            return
        except Exception as e:
            logger.warning(f"Remote connection failed for socket {socket_id}: {e}")
            await self._emit(socket_id, "error", {"message": f"Remote connection failed: {e}"})
            return
        finally:
            connection.setting_client = False

        logger.info(f"Socket {socket_id} connected to client {client_id} at {url}")
        await self._emit(socket_id, "setClientSuccess", {"message": "Client context set", "clientId": str(client_id)})

    # =========================================================================
    # forward
    # =========================================================================

    def _stored_password(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> str | None:
        with self.database.session() as session:
            credential = ClientAgentCredentialsService(session).get(client_id, agent_id)
            return credential.password if credential else None

    async def _login(self, link: RemoteAgentLink, agent_id: uuid.UUID, password: str) -> None:
        try:
            event, data = await link.request(
                "login", {"agentId": str(agent_id), "password": password}, LOGIN_REPLIES, LOGIN_TIMEOUT
            )
        except asyncio.TimeoutError as e:
            raise ForwardError("Login timeout") from e
        if event == "loginError":
            message = data.get("message") if isinstance(data, dict) else None
            raise ForwardError(message or "Login failed")

    async def handle_forward(self, socket_id: str, data: dict) -> None:
        connection = self.connections[socket_id]
        if connection.client_id is None:
            await self._emit(socket_id, "error", {"message": "No client selected. Call setClient first."})
            return
        link = connection.link
        if link is None:
            await self._emit(socket_id, "error", {"message": "Remote connection not established"})
            return
        if not link.connected and not await link.wait_connected(self.settings.SOCKET_WAIT_TIMEOUT_MS / 1000):
            await self._emit(socket_id, "error", {"message": "Remote connection not established"})
            return

        event = data.get("event")
        payload = data.get("payload")
        raw_agent_id = data.get("agentId")
        try:
            if not event:
                raise ForwardError("event is required")
            agent_id = _parse_agent_id(raw_agent_id)

            if event == "login" and raw_agent_id:
                password = await self._password_for(connection.client_id, agent_id)
                if password is None:
                    raise ForwardError(f"No stored credentials for agent {raw_agent_id}")
                await self._login(link, agent_id, password)
                connection.logged_in_agents.add(agent_id)
                await self._emit(socket_id, "forwardAck", {"received": True, "event": event})
                return

            if agent_id is not None and agent_id not in connection.logged_in_agents:
                password = await self._password_for(connection.client_id, agent_id)
                if password is not None:
                    await self._login(link, agent_id, password)
                    connection.logged_in_agents.add(agent_id)
                else:
                    logger.warning(
                        f"No stored credentials for client {connection.client_id}, "
                        f"agent {agent_id}; skipping auto-login"
                    )

            await link.emit(event, payload)
        except (ForwardError, ConnectionError) as e:
            await self._emit(socket_id, "error", {"message": str(e)})
            return

        await self._emit(socket_id, "forwardAck", {"received": True, "event": event})

    async def _password_for(self, client_id: uuid.UUID, agent_id: uuid.UUID | None) -> str | None:
        if agent_id is None:
            return None
        return await asyncio.to_thread(self._stored_password, client_id, agent_id)

    async def _restore_logins(self, socket_id: str) -> None:
        connection = self.connections.get(socket_id)
        if connection is None or connection.link is None or connection.client_id is None:
            return
        agents = list(connection.logged_in_agents)
        if agents:
            logger.info(f"Restoring {len(agents)} agent login(s) after remote reconnection for socket {socket_id}")
        for agent_id in agents:
            password = await self._password_for(connection.client_id, agent_id)
            if password is None:
                logger.warning(f"Cannot restore login for agent {agent_id} on socket {socket_id}: no credentials")
                connection.logged_in_agents.discard(agent_id)
                continue
            try:
                await self._login(connection.link, agent_id, password)
            except (ForwardError, ConnectionError) as e:
                logger.warning(f"Failed to restore login for agent {agent_id} on socket {socket_id}: {e}")
                connection.logged_in_agents.discard(agent_id)


def _parse_agent_id(value: Any) -> uuid.UUID | None:
    """Credentials are keyed by agent UUID; anything else has none stored."""
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@router.websocket("/clients")
async def clients_socket(websocket: WebSocket):
    gateway: ClientsGateway = websocket.app.state.gateway
    await gateway.handle(websocket)
