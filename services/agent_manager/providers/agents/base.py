"""Agent provider interface."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


def strip_to_braces(text: str) -> str:
    """Drop everything before the first ``{`` and after the last ``}``."""
    text = text.strip()
    first = text.find("{")
    if first != -1:
        text = text[first:]
    last = text.rfind("}")
    if last != -1:
        text = text[: last + 1]
    return text


class AgentProvider(ABC):
    """A coding assistant binary driven inside an agent container."""

    @abstractmethod
    def get_type(self) -> str: ...

    @abstractmethod
    def get_display_name(self) -> str: ...

    @abstractmethod
    def get_docker_image(self) -> str: ...

    @abstractmethod
    def get_virtual_workspace_docker_image(self) -> str: ...

    @abstractmethod
    def get_ssh_connection_docker_image(self) -> str: ...

    @abstractmethod
    def send_message(self, agent_id: str, container_id: str, message: str, model: str | None = None) -> str:
        """Send ``message`` to the agent and return its raw output."""

    @abstractmethod
    def send_initialization(self, agent_id: str, container_id: str, model: str | None = None) -> None:
        """Establish system context for a freshly created agent."""

    def to_parseable_string(self, response: str) -> str:
        return strip_to_braces(response)

    def to_parseable_strings(self, response: str) -> list[str]:
        return [self.to_parseable_string(response)]

    def to_unified_response(self, response: str) -> dict[str, Any]:
        return json.loads(response)

    def parse_response(self, response: str) -> dict[str, Any]:
        """
        Turn raw agent output into one unified response object.

        Multiple parseable parts are merged into a single ``result`` text.
        Output that is not valid JSON is returned as the ``result`` of an
        ``error`` object instead of raising.
        """
        try:
            parts = [self.to_unified_response(part) for part in self.to_parseable_strings(response) if part]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Unparseable response from {self.get_type()} agent: {e}")
            return {"type": "result", "subtype": "error", "result": response}

        if len(parts) == 1:
            return parts[0]
        return {
            "type": "result",
            "subtype": "success",
            "result": "\n".join(str(part.get("result", "")) for part in parts),
        }
