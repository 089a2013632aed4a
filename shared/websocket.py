"""
JSON event envelope for WebSocket gateways.

Frames are text messages of the form ``{"event": "<name>", "data": {...}}``
in both directions.
"""

import json
import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


def encode_event(event: str, data: Any = None) -> str:
    return json.dumps({"event": event, "data": data if data is not None else {}}, default=str)


def decode_event(raw: str | bytes) -> tuple[str | None, Any]:
    """Parse an envelope; returns ``(None, None)`` for malformed frames."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None, None
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        return None, None
    data = message.get("data")
    return message["event"], data if data is not None else {}


async def send_event(websocket: WebSocket, event: str, data: Any = None) -> bool:
    """Send one envelope; returns False when the socket is already gone."""
    if websocket.client_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_text(encode_event(event, data))
        return True
    except (RuntimeError, OSError) as e:
        logger.debug(f"Dropping {event} for closed socket: {e}")
        return False
