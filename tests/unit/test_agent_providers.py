"""
Tests for the cursor and OpenCode agent providers.
"""
import json
from unittest.mock import MagicMock

import pytest

from services.agent_manager.config.settings import ManagerSettings
from services.agent_manager.providers.agents import (
    AgentProviderFactory,
    CursorAgentProvider,
    OpenCodeAgentProvider,
)
from services.agent_manager.providers.agents.base import strip_to_braces
from services.agent_manager.services.docker_service import DockerService


@pytest.fixture
def docker():
    return MagicMock(spec=DockerService)


@pytest.fixture
def settings():
    return ManagerSettings(CURSOR_AGENT_DOCKER_IMAGE="cursor:test", OPENCODE_AGENT_DOCKER_IMAGE="opencode:test")


class TestResponseParsing:
    """Raw output to unified response."""

    def test_strip_to_braces(self):
        """Text around the outermost JSON object is removed."""
        assert strip_to_braces('noise {"a": {"b": 1}} trailing') == '{"a": {"b": 1}}'

    def test_cursor_parses_json(self, docker, settings):
        """cursor-agent JSON output is returned as-is."""
        provider = CursorAgentProvider(docker, settings)
        raw = 'Loading...\n{"type": "result", "subtype": "success", "result": "Done"}\n'
        assert provider.parse_response(raw) == {"type": "result", "subtype": "success", "result": "Done"}

    def test_unparseable_output_becomes_error(self, docker, settings):
        """Output that is not JSON is wrapped as an error result."""
        provider = CursorAgentProvider(docker, settings)
        assert provider.parse_response("segfault") == {"type": "result", "subtype": "error", "result": "segfault"}

    def test_opencode_merges_text_parts(self, docker, settings):
        """OpenCode text events are joined into one result."""
        provider = OpenCodeAgentProvider(docker, settings)
        raw = "\n".join(
            [
                json.dumps({"type": "step_start"}, separators=(",", ":")),
                json.dumps({"type": "text", "part": {"text": "Hello"}}, separators=(",", ":")),
                json.dumps({"type": "text", "part": {"text": ""}}, separators=(",", ":")),
                json.dumps({"type": "text", "part": {"text": "World"}}, separators=(",", ":")),
            ]
        )
        assert provider.parse_response(raw) == {"type": "result", "subtype": "success", "result": "Hello\nWorld"}


class TestCommands:
    """Commands sent into the agent container."""

    def test_cursor_resumes_session(self, docker, settings):
        """Messages resume the agent's session and pass the model."""
        docker.send_command_to_container.return_value = "{}"
        CursorAgentProvider(docker, settings).send_message("agent-1", "c1", "hi", model="gpt-5")
        command = docker.send_command_to_container.call_args.args[1]
        assert "--resume agent-1-c1" in command
        assert command.endswith("--model gpt-5")
        assert docker.send_command_to_container.call_args.kwargs["input"] == "hi"

    def test_cursor_initialization(self, docker, settings):
        """Initialization sends the command and rules instructions."""
        CursorAgentProvider(docker, settings).send_initialization("agent-1", "c1")
        assert "COMMAND SYSTEM" in docker.send_command_to_container.call_args.kwargs["input"]

    def test_opencode_retries_without_session(self, docker, settings):
        """A missing session is retried without --continue."""
        docker.send_command_to_container.side_effect = ["Error: Session not found", "{}"]
        OpenCodeAgentProvider(docker, settings).send_message("agent-1", "c1", "hi", model="auto")
        first, second = (call.args[1] for call in docker.send_command_to_container.call_args_list)
        assert "--continue" in first
        assert "--continue" not in second
        assert "--model" not in second

    def test_images_come_from_settings(self, docker, settings):
        """Each provider reports its configured image."""
        assert CursorAgentProvider(docker, settings).get_docker_image() == "cursor:test"
        assert OpenCodeAgentProvider(docker, settings).get_docker_image() == "opencode:test"


class TestProviderFactory:
    """Registry behaviour."""

    def test_lookup(self, docker, settings):
        """Providers are found by type."""
        factory = AgentProviderFactory()
        factory.register_provider(CursorAgentProvider(docker, settings))
        assert factory.has_provider("cursor")
        assert factory.get_registered_types() == ["cursor"]

    def test_unknown_type(self):
        """Unknown types raise with the available list."""
        with pytest.raises(ValueError, match="Available types: none"):
            AgentProviderFactory().get_provider("cursor")
