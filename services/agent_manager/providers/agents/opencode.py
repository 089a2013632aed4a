"""OpenCode provider."""

import json
from typing import Any

from ...config import ManagerSettings
from ...services.docker_service import DockerService
from .base import AgentProvider, strip_to_braces


class OpenCodeAgentProvider(AgentProvider):
    TYPE = "opencode"

    def __init__(self, docker_service: DockerService, settings: ManagerSettings):
        self.docker_service = docker_service
        self.settings = settings

    def get_type(self) -> str:
        return self.TYPE

    def get_display_name(self) -> str:
        return "OpenCode"

    def get_docker_image(self) -> str:
        return self.settings.OPENCODE_AGENT_DOCKER_IMAGE

    def get_virtual_workspace_docker_image(self) -> str:
        return self.settings.OPENCODE_AGENT_VIRTUAL_WORKSPACE_DOCKER_IMAGE

    def get_ssh_connection_docker_image(self) -> str:
        return self.settings.OPENCODE_AGENT_SSH_CONNECTION_DOCKER_IMAGE

    def send_message(
        self, agent_id: str, container_id: str, message: str, model: str | None = None, resume: bool = True
    ) -> str:
        command = "opencode run --format json"
        if resume:
            command += " --continue"
        if model and model != "auto":
            command += f" --model {model}"

        response = self.docker_service.send_command_to_container(container_id, command, input=message)
        if resume and "Session not found" in response:
            return self.send_message(agent_id, container_id, message, model=model, resume=False)
        return response

    def send_initialization(self, agent_id: str, container_id: str, model: str | None = None) -> None:
        return None

    def to_parseable_strings(self, response: str) -> list[str]:
        """One JSON object per non-empty text part in the event stream."""
        return [
            strip_to_braces(line)
            for line in response.split("\n")
            if '"type":"text"' in line and '"text":""' not in line
        ]

    def to_parseable_string(self, response: str) -> str:
        return "".join(self.to_parseable_strings(response))

    def to_unified_response(self, response: str) -> dict[str, Any]:
        event = json.loads(response)
        return {"type": "result", "subtype": "success", "result": event["part"]["text"]}
