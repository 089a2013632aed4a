"""
Agents WebSocket Gateway - chat with agents over ``/agents``.

Frames use the ``{"event", "data"}`` envelope from ``shared.websocket``.
A socket logs into one agent at a time; chat messages are relayed to the
agent's provider and broadcast to every socket logged into the same agent.

Events handled:
    login   {agentId, password}   agentId may be the agent's id or name
    chat    {message, model?}
    logs    {tail?}               stream the container log as containerLog
    logout  {}
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from shared.auth import authenticate_websocket
from shared.db import Database
from shared.websocket import decode_event, send_event

from .config.settings import ManagerSettings
from .models import Agent, AgentMessage
from .providers.agents import AgentProviderFactory
from .providers.chat_filters import ChatFilterFactory, FilterContext, FilterDirection
from .repositories import AgentRepository
from .services.common import require_container
from .services.docker_service import DockerService, iter_log_lines
from .services.messages_service import AgentMessagesService
from .services.passwords import verify_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

HISTORY_LIMIT = 1000


@dataclass
class AgentConnection:
    websocket: WebSocket
    agent_id: uuid.UUID | None = None
    log_task: asyncio.Task | None = None
    log_stream: Any = None
    chat_tasks: set[asyncio.Task] = field(default_factory=set)


def message_payload(row: AgentMessage) -> dict[str, Any]:
    """``chatMessage`` payload for a stored message."""
    timestamp = row.created_at.isoformat()
    if row.actor == "user":
        return {"from": "user", "text": row.message, "timestamp": timestamp, "filtered": row.filtered}
    try:
        response = json.loads(row.message)
    except ValueError:
        response = row.message
    return {"from": "agent", "response": response, "timestamp": timestamp, "filtered": row.filtered}


def response_text(response: Any) -> str:
    if isinstance(response, dict) and isinstance(response.get("result"), str):
        return response["result"]
    return response if isinstance(response, str) else json.dumps(response)


def _blocked_message(prefix: str, reason: str | None, filter_type: str | None) -> str:
    return f"{prefix}: {reason or filter_type or 'filtered'}"


class AgentsGateway:
    def __init__(
        self,
        database: Database,
        docker_service: DockerService,
        provider_factory: AgentProviderFactory,
        filter_factory: ChatFilterFactory,
        settings: ManagerSettings,
    ):
        self.database = database
        self.docker_service = docker_service
        self.provider_factory = provider_factory
        self.filter_factory = filter_factory
        self.settings = settings
        self.connections: dict[str, AgentConnection] = {}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def handle(self, websocket: WebSocket) -> None:
        await websocket.accept()
        if await authenticate_websocket(websocket, self.settings) is None:
            return

        socket_id = uuid.uuid4().hex
        self.connections[socket_id] = AgentConnection(websocket=websocket)
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
            self.disconnect(socket_id)

    def disconnect(self, socket_id: str) -> None:
        connection = self.connections.pop(socket_id, None)
        if connection is None:
            return
        self._stop_logs(connection)
        for task in connection.chat_tasks:
            task.cancel()
        logger.info(f"Client disconnected: {socket_id}")

    async def dispatch(self, socket_id: str, event: str, data: Any) -> None:
        handlers = {
            "login": self.handle_login,
            "chat": self.handle_chat,
            "logs": self.handle_logs,
            "logout": self.handle_logout,
        }
        handler = handlers.get(event)
        if handler is None:
            await self._emit(socket_id, "error", {"message": f"Unknown event: {event}"})
            return
        payload = data if isinstance(data, dict) else {}
        if event == "chat":
            # Runs beside the receive loop so logout and logs never queue behind a reply.
            self._start_chat(socket_id, payload)
            return
        await handler(socket_id, payload)

    def _start_chat(self, socket_id: str, data: dict) -> None:
        connection = self.connections[socket_id]
        task = asyncio.create_task(self.handle_chat(socket_id, data))
        connection.chat_tasks.add(task)
        task.add_done_callback(lambda done: self._chat_finished(connection, done))

    @staticmethod
    def _chat_finished(connection: AgentConnection, task: asyncio.Task) -> None:
        connection.chat_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Chat handling failed: {task.exception()}")

    async def _emit(self, socket_id: str, event: str, data: Any) -> None:
        connection = self.connections.get(socket_id)
        if connection is not None:
            await send_event(connection.websocket, event, data)

    async def broadcast(self, agent_id: uuid.UUID, event: str, data: Any) -> None:
        """Send to every socket logged into ``agent_id``."""
        targets = [c.websocket for c in self.connections.values() if c.agent_id == agent_id]
        await asyncio.gather(*(send_event(ws, event, data) for ws in targets))

    # =========================================================================
    # login / logout
    # =========================================================================

    def _find_agent(self, session, reference: str) -> Agent | None:
        try:
            agent = AgentRepository.get(session, uuid.UUID(reference))
        except ValueError:
            agent = None
        return agent or AgentRepository.get_by_name(session, reference)

    def _login(self, reference: str, password: str) -> tuple[Agent, list[dict[str, Any]]] | None:
        with self.database.session() as session:
            agent = self._find_agent(session, reference)
            if agent is None or not verify_password(password, agent.hashed_password):
                return None
            history = AgentMessagesService(session).get_chat_history(agent.id, limit=HISTORY_LIMIT)
            return agent, [message_payload(row) for row in history]

    async def handle_login(self, socket_id: str, data: dict) -> None:
        reference = str(data.get("agentId") or "")
        password = str(data.get("password") or "")

        result = await asyncio.to_thread(self._login, reference, password) if reference else None
        if result is None:
            logger.warning(f"Failed login attempt for agent: {reference}")
            await self._emit(socket_id, "loginError", {"message": "Invalid credentials"})
            return

        agent, history = result
        connection = self.connections[socket_id]
        if connection.agent_id != agent.id:
            self._stop_logs(connection)
        connection.agent_id = agent.id

        logger.info(f"Agent {agent.name} authenticated on socket {socket_id}")
        await self._emit(socket_id, "loginSuccess", {"message": f"Welcome, {agent.name}!", "agentId": str(agent.id)})
        for payload in history:
            await self._emit(socket_id, "chatMessage", payload)

    async def handle_logout(self, socket_id: str, data: dict) -> None:
        connection = self.connections[socket_id]
        self._stop_logs(connection)
        connection.agent_id = None
        await self._emit(socket_id, "logoutSuccess", {"message": "Logged out"})

    # =========================================================================
    # chat
    # =========================================================================

    def _store_message(self, agent_id: uuid.UUID, actor: str, content: Any, filtered: bool) -> dict[str, Any]:
        with self.database.session() as session:
            service = AgentMessagesService(session)
            if actor == "user":
                row = service.create_user_message(agent_id, content, filtered=filtered)
            else:
                row = service.create_agent_message(agent_id, content, filtered=filtered)
            return message_payload(row)

    def _agent_target(self, agent_id: uuid.UUID) -> tuple[str, str]:
        with self.database.session() as session:
            container_id = require_container(session, agent_id)
            return AgentRepository.get(session, agent_id).agent_type, container_id

    async def handle_chat(self, socket_id: str, data: dict) -> None:
        agent_id = self.connections[socket_id].agent_id
        if agent_id is None:
            await self._emit(socket_id, "error", {"message": "Unauthorized. Please login first."})
            return

        message = str(data.get("message") or "").strip()
        if not message:
            return
        model = data.get("model") or None

        incoming = await self.filter_factory.apply_filters(
            FilterDirection.INCOMING, message, FilterContext(agent_id=str(agent_id), actor="user")
        )
        if incoming.status == "dropped":
            await asyncio.to_thread(self._store_message, agent_id, "user", message, True)
            reason = incoming.matched_filter.reason if incoming.matched_filter else None
            filter_type = incoming.matched_filter.type if incoming.matched_filter else None
            await self._emit(
                socket_id, "error", {"message": _blocked_message("Message blocked by filter", reason, filter_type)}
            )
            return

        text = incoming.effective_message
        user_payload = await asyncio.to_thread(self._store_message, agent_id, "user", text, incoming.is_filtered)
        await self.broadcast(agent_id, "chatMessage", user_payload)

        try:
            agent_type, container_id = await asyncio.to_thread(self._agent_target, agent_id)
            provider = self.provider_factory.get_provider(agent_type)
            raw = await asyncio.to_thread(provider.send_message, str(agent_id), container_id, text, model)
            response = provider.parse_response(raw)
        except Exception as e:
            logger.error(f"Error processing message for agent {agent_id}: {e}")
            await self._emit(socket_id, "error", {"message": f"Error processing message: {e}"})
            return

        outgoing = await self.filter_factory.apply_filters(
            FilterDirection.OUTGOING, response_text(response), FilterContext(agent_id=str(agent_id), actor="agent")
        )
        if outgoing.status == "dropped":
            await asyncio.to_thread(self._store_message, agent_id, "agent", response, True)
            reason = outgoing.matched_filter.reason if outgoing.matched_filter else None
            filter_type = outgoing.matched_filter.type if outgoing.matched_filter else None
            await self._emit(
                socket_id, "error", {"message": _blocked_message("Agent response blocked by filter", reason, filter_type)}
            )
            return
        if outgoing.modified_message is not None and isinstance(response, dict):
            response = {**response, "result": outgoing.modified_message}

        agent_payload = await asyncio.to_thread(
            self._store_message, agent_id, "agent", response, outgoing.is_filtered
        )
        await self.broadcast(agent_id, "chatMessage", agent_payload)

    # =========================================================================
    # logs
    # =========================================================================

    def _stop_logs(self, connection: AgentConnection) -> None:
        if connection.log_task is not None:
            connection.log_task.cancel()
            connection.log_task = None
        if connection.log_stream is not None:
            # Unblocks the reader thread still waiting on the follow stream.
            try:
                connection.log_stream.close()
            except Exception as e:
                logger.debug(f"Closing log stream failed: {e}")
            connection.log_stream = None

    async def handle_logs(self, socket_id: str, data: dict) -> None:
        connection = self.connections[socket_id]
        if connection.agent_id is None:
            await self._emit(socket_id, "error", {"message": "Unauthorized. Please login first."})
            return

        try:
            tail = int(data.get("tail") or 100)
        except (TypeError, ValueError):
            tail = 100

        self._stop_logs(connection)
        try:
            _, container_id = await asyncio.to_thread(self._agent_target, connection.agent_id)
            stream = await asyncio.to_thread(self.docker_service.follow_container_logs, container_id, tail)
        except Exception as e:
            await self._emit(socket_id, "error", {"message": str(getattr(e, "message", e))})
            return

        connection.log_stream = stream
        connection.log_task = asyncio.create_task(self._stream_logs(socket_id, container_id, stream))

    async def _stream_logs(self, socket_id: str, container_id: str, stream) -> None:
        lines = iter_log_lines(stream)
        try:
            while True:
                line = await asyncio.to_thread(next, lines, None)
                if line is None:
                    break
                await self._emit(socket_id, "containerLog", {"line": line})
        except Exception as e:
            logger.warning(f"Log stream for container {container_id[:12]} ended: {e}")
            await self._emit(socket_id, "error", {"message": f"Log stream failed: {e}"})


@router.websocket("/agents")
async def agents_socket(websocket: WebSocket):
    gateway: AgentsGateway = websocket.app.state.gateway
    await gateway.handle(websocket)
