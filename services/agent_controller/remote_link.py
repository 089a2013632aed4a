"""
WebSocket link from the controller to a remote agent-manager's ``/agents``
gateway.

One link per local ``/clients`` socket. A reader task relays every remote
event to ``on_event``; when the remote drops, the link reconnects with
exponential backoff and reports each step as a ``remote*`` event.
"""

import asyncio
import logging
import ssl
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from shared.websocket import decode_event, encode_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Any], Awaitable[None]]
ReconnectHandler = Callable[[], Awaitable[None]]

DEFAULT_REMOTE_WS_PORT = 8080


def agents_ws_url(endpoint: str, agent_ws_port: int | None = None, default_port: int | None = None) -> str:
    """``ws(s)://{host}:{port}/agents`` for a client's HTTP endpoint."""
    url = urlsplit(endpoint)
    scheme = "wss" if url.scheme == "https" else "ws"
    port = agent_ws_port or default_port or DEFAULT_REMOTE_WS_PORT
    return f"{scheme}://{url.hostname}:{port}/agents"


def insecure_ssl_context() -> ssl.SSLContext:
    # Remote managers serve self-signed certificates
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class RemoteAgentLink:
    def __init__(
        self,
        url: str,
        authorization: str,
        on_event: EventHandler,
        on_reconnected: ReconnectHandler | None = None,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 1.0,
        reconnection_delay_max: float = 5.0,
        open_timeout: float = 10.0,
    ):
        self.url = url
        self.authorization = authorization
        self.on_event = on_event
        self.on_reconnected = on_reconnected
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self.reconnection_delay_max = reconnection_delay_max
        self.open_timeout = open_timeout

        self._ws = None
        self._reader: asyncio.Task | None = None
        self._restore: asyncio.Task | None = None
        self._connected = asyncio.Event()
        self._closed = False
        self._waiters: list[tuple[set[str], asyncio.Future]] = []

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    # =========================================================================
    # Connection
    # =========================================================================

    async def _open(self) -> None:
        ssl_context = insecure_ssl_context() if self.url.startswith("wss://") else None
        self._ws = await websockets.connect(
            self.url,
            additional_headers={"Authorization": self.authorization},
            ssl=ssl_context,
            open_timeout=self.open_timeout,
        )
        self._connected.set()

    async def connect(self) -> None:
        """Open the link and start relaying; raises if the first attempt fails."""
        await self._open()
        logger.info(f"Connected to remote agents gateway {self.url}")
        self._reader = asyncio.create_task(self._run())

    async def wait_connected(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def close(self) -> None:
        self._closed = True
        self._connected.clear()
        for task in (self._reader, self._restore):
            if task is not None:
                task.cancel()
        self._reader = self._restore = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        for _, future in self._waiters:
            if not future.done():
                future.cancel()
        self._waiters.clear()

    # =========================================================================
    # Messaging
    # =========================================================================

    async def emit(self, event: str, data: Any = None) -> None:
        if self._ws is None or not self.connected:
            raise ConnectionError("Remote connection not established")
        await self._ws.send(encode_event(event, data))

    async def request(self, event: str, data: Any, replies: set[str], timeout: float) -> tuple[str, Any]:
        """Emit ``event`` and wait for the first of ``replies``."""
        future = asyncio.get_running_loop().create_future()
        waiter = (replies, future)
        self._waiters.append(waiter)
        try:
            await self.emit(event, data)
            return await asyncio.wait_for(future, timeout)
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _resolve_waiters(self, event: str, data: Any) -> None:
        for replies, future in list(self._waiters):
            if event in replies and not future.done():
                future.set_result((event, data))

    # =========================================================================
    # Reader and reconnection
    # =========================================================================

    async def _read(self) -> str:
        """Relay frames until the remote closes; returns the close reason."""
        try:
            async for raw in self._ws:
                event, data = decode_event(raw)
                if event is None:
                    logger.debug(f"Ignoring malformed frame from {self.url}")
                    continue
                self._resolve_waiters(event, data)
                await self.on_event(event, data)
        except ConnectionClosed as e:
            return e.rcvd.reason if e.rcvd and e.rcvd.reason else "connection closed"
        return "connection closed"

    async def _run(self) -> None:
        while not self._closed:
            reason = await self._read()
            self._connected.clear()
            if self._closed:
                return
            logger.warning(f"Remote gateway {self.url} disconnected: {reason}")
            await self.on_event("remoteDisconnected", {"reason": reason})
            if not await self._reconnect():
                return

    async def _reconnect(self) -> bool:
        last_error = "Reconnection failed after all attempts"
        for attempt in range(1, self.reconnection_attempts + 1):
            await self.on_event("remoteReconnecting", {"attempt": attempt})
            delay = min(self.reconnection_delay * 2 ** (attempt - 1), self.reconnection_delay_max)
            await asyncio.sleep(delay)
            if self._closed:
                return False
            try:
                await self._open()
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"Reconnection attempt {attempt} to {self.url} failed: {last_error}")
                await self.on_event("remoteReconnectError", {"error": last_error, "attempt": attempt})
                continue

            logger.info(f"Reconnected to {self.url} on attempt {attempt}")
            await self.on_event("remoteReconnected", {"attempt": attempt})
            if self.on_reconnected is not None:
                self._restore = asyncio.create_task(self.on_reconnected())
            return True

        logger.error(f"Giving up on {self.url} after {self.reconnection_attempts} attempts")
        await self.on_event("remoteReconnectFailed", {"error": last_error})
        return False
