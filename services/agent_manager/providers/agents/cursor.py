"""cursor-agent provider."""

import logging

from ...config import ManagerSettings
from ...services.docker_service import DockerService
from .base import AgentProvider

logger = logging.getLogger(__name__)

INITIALIZATION_INSTRUCTIONS = """You are operating in a codebase with a structured command and rules system. Follow these guidelines:

COMMAND SYSTEM:
- Executable commands **CAN** be found in the project folder at .cursor/commands
- Each command **IS** a Markdown (.md) file
- The command invocation format **IS** /{filenamewithoutextension} (where filenamewithoutextension is the filename without the .md extension)
- Example: A file named "ship.md" in .cursor/commands **IS** invoked as /ship
- Commands **MUST** be at the start of a message to be recognized and executed
- When you need to execute a command, you **MUST** look for it in .cursor/commands and invoke it using the /{filenamewithoutextension} format at the beginning of your message

RULES SYSTEM:
- Basic context files **CAN** be found in .cursor/rules
- Rules files **MAY** contain an "alwaysApply" property (this is optional in the system)
- If a rules file has "alwaysApply: true", you **MUST** always read and apply that file regardless of context
- If a rules file has "alwaysApply: false", you **SHALL** only apply that file to files matching the respective "globs:" entries
- The "globs:" property **CONTAINS** comma-separated glob patterns that specify which files the rules apply to
- When processing a file, you **MUST** check all rules files with "alwaysApply: true" and all rules files with "alwaysApply: false" whose globs match the current file path

MESSAGE HANDLING:
- This is a one-time initialization message to establish system context
- All subsequent messages you receive **WILL** be from users
- You **MUST** treat all messages after this initialization as user requests, tasks, or questions
- You **SHALL** respond to user messages as you would in a normal conversation, applying the command and rules system guidelines above"""


class CursorAgentProvider(AgentProvider):
    TYPE = "cursor"

    def __init__(self, docker_service: DockerService, settings: ManagerSettings):
        self.docker_service = docker_service
        self.settings = settings

    def get_type(self) -> str:
        return self.TYPE

    def get_display_name(self) -> str:
        return "Cursor"

    def get_docker_image(self) -> str:
        return self.settings.CURSOR_AGENT_DOCKER_IMAGE

    def get_virtual_workspace_docker_image(self) -> str:
        return self.settings.CURSOR_AGENT_VIRTUAL_WORKSPACE_DOCKER_IMAGE

    def get_ssh_connection_docker_image(self) -> str:
        return self.settings.CURSOR_AGENT_SSH_CONNECTION_DOCKER_IMAGE

    def _command(self, agent_id: str, container_id: str, model: str | None) -> str:
        command = (
            "cursor-agent --print --approve-mcps --force --output-format json "
            f"--resume {agent_id}-{container_id}"
        )
        if model:
            command += f" --model {model}"
        return command

    def send_message(self, agent_id: str, container_id: str, message: str, model: str | None = None) -> str:
        return self.docker_service.send_command_to_container(
            container_id, self._command(agent_id, container_id, model), input=message
        )

    def send_initialization(self, agent_id: str, container_id: str, model: str | None = None) -> None:
        # Not persisted or broadcast
        self.docker_service.send_command_to_container(
            container_id, self._command(agent_id, container_id, model), input=INITIALIZATION_INSTRUCTIONS
        )
        logger.debug(f"Sent initialization message to agent {agent_id}")
