"""
Tests for the Docker Engine wrapper.

The SDK client is a MagicMock; only the calls DockerService makes are asserted.
"""
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from services.agent_manager.services.docker_service import (
    MANAGED_ENV_LABEL,
    DockerService,
    PortBinding,
    VolumeBinding,
    iter_log_lines,
)
from shared.errors import NotFoundError


def api_error(status_code):
    return APIError("engine error", response=MagicMock(status_code=status_code))


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def service(client):
    return DockerService(client=client, default_image="agenstra/agent:latest")


@pytest.fixture
def container(client):
    container = MagicMock(id="c" * 64, status="running")
    container.name = "agenstra-alpha"
    client.containers.get.return_value = container
    return container


class TestCreate:
    """Container creation."""

    def test_create_with_bindings(self, service, client):
        client.containers.create.return_value = MagicMock(id="new" + "0" * 61)

        container_id = service.create_container(
            name="agenstra-alpha",
            env={"AGENT_NAME": "alpha", "EMPTY": None},
            volumes=[VolumeBinding("/data/alpha", "/app"), VolumeBinding("/keys", "/root/.ssh", read_only=True)],
            ports=[PortBinding(6080)],
            network="net1",
        )

        assert container_id.startswith("new")
        client.images.pull.assert_called_once_with("agenstra/agent:latest")
        kwargs = client.containers.create.call_args.kwargs
        assert kwargs["environment"] == {"AGENT_NAME": "alpha", "EMPTY": ""}
        assert kwargs["volumes"] == ["/data/alpha:/app", "/keys:/root/.ssh:ro"]
        assert kwargs["ports"] == {"6080/tcp": None}
        assert kwargs["network"] == "net1"
        client.containers.create.return_value.start.assert_called_once()

    def test_failed_pull_is_tolerated(self, service, client):
        """A local image may still exist, so pull errors only log."""
        client.images.pull.side_effect = ImageNotFound("no such image")
        client.containers.create.return_value = MagicMock(id="x" * 64)
        assert service.create_container(image="local/only") == "x" * 64


class TestDelete:
    """Stop and remove."""

    def test_missing_container(self, service, client):
        client.containers.get.side_effect = NotFound("gone")
        with pytest.raises(NotFoundError, match="Container with ID 'abc' not found"):
            service.delete_container("abc")

    def test_stop_then_remove(self, service, container):
        service.delete_container(container.id)
        container.stop.assert_called_once()
        container.remove.assert_called_once_with()

    def test_conflict_forces_removal(self, service, container):
        container.remove.side_effect = [api_error(409), None]
        service.delete_container(container.id)
        assert container.remove.call_args.kwargs == {"force": True}

    def test_already_removed(self, service, container):
        container.remove.side_effect = NotFound("gone")
        service.delete_container(container.id)

    def test_other_errors_propagate(self, service, container):
        container.remove.side_effect = api_error(500)
        with pytest.raises(APIError):
            service.delete_container(container.id)


class TestUpdate:
    """Recreation with agent environment variables."""

    def test_env_merged_and_stale_keys_dropped(self, service, client, container):
        """Keys from the previous update are replaced, the base environment kept."""
        container.attrs = {
            "Config": {
                "Image": "agenstra/agent:latest",
                "Env": ["AGENT_NAME=alpha", "OLD_VAR=1", "API_URL=old"],
                "Labels": {MANAGED_ENV_LABEL: "API_URL,OLD_VAR"},
            },
            "HostConfig": {
                "Binds": ["/data/alpha:/app"],
                "PortBindings": {"6080/tcp": [{"HostPort": "49152"}]},
            },
            "NetworkSettings": {"Networks": {"bridge": {}, "agenstra-alpha-net": {}}},
        }
        client.containers.create.return_value = MagicMock(id="d" * 64)

        new_id = service.update_container(container.id, {"API_URL": "https://new"})

        assert new_id == "d" * 64
        container.remove.assert_called_once_with(force=True)
        kwargs = client.containers.create.call_args.kwargs
        assert kwargs["name"] == "agenstra-alpha"
        assert kwargs["environment"] == {"AGENT_NAME": "alpha", "API_URL": "https://new"}
        assert kwargs["labels"][MANAGED_ENV_LABEL] == "API_URL"
        assert kwargs["volumes"] == ["/data/alpha:/app"]
        assert kwargs["ports"] == {"6080/tcp": 49152}
        client.networks.get.assert_called_once_with("agenstra-alpha-net")


class TestExec:
    """Commands and logs."""

    def test_exec_without_input(self, service, container):
        container.exec_run.return_value = (0, b"On branch main\n")
        assert service.send_command_to_container(container.id, "git -C /app status") == "On branch main"
        assert container.exec_run.call_args.args[0] == ["git", "-C", "/app", "status"]

    def test_check_exit_code(self, service, container):
        container.exec_run.return_value = (128, b"fatal: not a git repository")
        with pytest.raises(RuntimeError, match="exit code 128: fatal: not a git repository"):
            service.send_command_to_container(container.id, "git status", check_exit_code=True)

    def test_exit_code_ignored_by_default(self, service, container):
        container.exec_run.return_value = (1, b"")
        assert service.send_command_to_container(container.id, "false") == ""

    def test_logs_split_into_lines(self):
        """Chunks are re-split on newlines; a trailing partial line is flushed."""
        chunks = [b"first\nsec", b"ond\r\nthi", b"rd"]
        assert list(iter_log_lines(chunks)) == ["first", "second", "third"]

    def test_follow_returns_closable_stream(self, service, container):
        """The SDK stream is handed back as-is so callers can close it."""
        stream = service.follow_container_logs(container.id, tail=5)
        assert stream is container.logs.return_value
        assert container.logs.call_args.kwargs == {
            "stream": True,
            "follow": True,
            "tail": 5,
            "stdout": True,
            "stderr": True,
        }

    def test_published_port(self, service, container):
        container.ports = {"6080/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49153"}]}
        assert service.get_published_port(container.id, "6080/tcp") == 49153
        assert service.get_published_port(container.id, "22/tcp") is None


class TestNetworks:
    def test_create_and_delete(self, service, client):
        client.networks.create.return_value = MagicMock(id="net-id")
        assert service.create_network("agenstra-alpha-net") == "net-id"
        client.networks.get.side_effect = NotFound("gone")
        service.delete_network("net-id")
