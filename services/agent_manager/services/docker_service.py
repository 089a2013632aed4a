"""
Docker Engine access for agent containers.

Wraps the ``docker`` SDK. All calls are blocking; async callers go through
``asyncio.to_thread``.
"""

import logging
import shlex
import socket
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import docker
from docker.errors import APIError, ImageNotFound, NotFound
from docker.types import CancellableStream
from docker.utils.socket import frames_iter

from shared.errors import NotFoundError

logger = logging.getLogger(__name__)

MANAGED_ENV_LABEL = "agenstra.managed-env"


@dataclass
class VolumeBinding:
    host_path: str
    container_path: str
    read_only: bool = False


@dataclass
class PortBinding:
    container_port: int
    host_port: int | None = None
    protocol: str = "tcp"


@dataclass
class ExecResult:
    exit_code: int | None
    output: str


def iter_log_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """Re-split raw log chunks into lines; a trailing partial line is flushed."""
    buffer = ""
    for chunk in chunks:
        buffer += chunk.decode("utf-8", errors="replace")
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.rstrip("\r")
    if buffer:
        yield buffer


class DockerService:
    """Thin service over ``docker.DockerClient``."""

    def __init__(self, client: docker.DockerClient | None = None, base_url: str | None = None, default_image: str = ""):
        self._client = client
        self._base_url = base_url
        self.default_image = default_image

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.DockerClient(base_url=self._base_url) if self._base_url else docker.from_env()
        return self._client

    def _get_container(self, container_id: str):
        try:
            return self.client.containers.get(container_id)
        except NotFound:
            raise NotFoundError(f"Container with ID '{container_id}' not found")

    # =========================================================================
    # Containers
    # =========================================================================

    def pull_image(self, image: str) -> None:
        try:
            self.client.images.pull(image)
        except (APIError, ImageNotFound) as e:
            # Create may still succeed from a local image
            logger.warning(f"Failed to pull image {image}: {e}")

    def create_container(
        self,
        image: str | None = None,
        name: str | None = None,
        env: dict[str, str | None] | None = None,
        volumes: list[VolumeBinding] | None = None,
        ports: list[PortBinding] | None = None,
        network: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Pull, create and start a container. Returns its id."""
        resolved_image = image or self.default_image
        self.pull_image(resolved_image)

        environment = {key: "" if value is None else str(value) for key, value in (env or {}).items()}
        binds = [f"{v.host_path}:{v.container_path}{':ro' if v.read_only else ''}" for v in volumes or []]
        port_bindings = {f"{p.container_port}/{p.protocol}": p.host_port for p in ports or []}

        create_kwargs = {
            "image": resolved_image,
            "environment": environment,
            "detach": True,
            "auto_remove": False,
        }
        if name:
            create_kwargs["name"] = name
        if binds:
            create_kwargs["volumes"] = binds
        if port_bindings:
            create_kwargs["ports"] = port_bindings
        if network:
            create_kwargs["network"] = network
        if labels:
            create_kwargs["labels"] = labels

        container = self.client.containers.create(**create_kwargs)
        container.start()
        logger.info(f"Started container {container.id[:12]} from {resolved_image}")
        return container.id

    def delete_container(self, container_id: str) -> None:
        """Stop (if running) and remove a container."""
        container = self._get_container(container_id)

        if container.status == "running":
            try:
                container.stop()
            except APIError as e:
                if e.status_code != 409:
                    logger.warning(f"Failed to stop container {container_id}: {e}")

        try:
            container.remove()
        except NotFound:
            logger.debug(f"Container {container_id} was already removed")
        except APIError as e:
            if e.status_code != 409:
                logger.error(f"Failed to remove container {container_id}: {e}")
                raise
            logger.warning(f"Container {container_id} is still running, attempting force removal")
            container.remove(force=True)

    def update_container(self, container_id: str, env: dict[str, str]) -> str:
        """
        Recreate a container with ``env`` merged over its base environment.

        The keys applied by a previous update are tracked in a label so that
        variables removed since then are dropped. Returns the new container id.
        """
        container = self._get_container(container_id)
        container.reload()
        attrs = container.attrs
        config = attrs.get("Config", {})
        host_config = attrs.get("HostConfig", {})
        networks = attrs.get("NetworkSettings", {}).get("Networks", {}) or {}

        labels = dict(config.get("Labels") or {})
        previous_keys = {key for key in labels.get(MANAGED_ENV_LABEL, "").split(",") if key}

        base_env: dict[str, str] = {}
        for entry in config.get("Env") or []:
            key, _, value = entry.partition("=")
            if key not in previous_keys:
                base_env[key] = value
        merged_env = {**base_env, **env}
        labels[MANAGED_ENV_LABEL] = ",".join(sorted(env))

        port_bindings = {}
        for port, bindings in (host_config.get("PortBindings") or {}).items():
            host_port = (bindings or [{}])[0].get("HostPort")
            port_bindings[port] = int(host_port) if host_port else None

        name = container.name
        if container.status == "running":
            container.stop(timeout=10)
        container.remove(force=True)

        create_kwargs = {
            "image": config.get("Image"),
            "name": name,
            "environment": merged_env,
            "labels": labels,
            "detach": True,
        }
        if host_config.get("Binds"):
            create_kwargs["volumes"] = host_config["Binds"]
        if port_bindings:
            create_kwargs["ports"] = port_bindings

        new_container = self.client.containers.create(**create_kwargs)
        for network_name in networks:
            if network_name in ("bridge", "host", "none"):
                continue
            try:
                self.client.networks.get(network_name).connect(new_container)
            except APIError as e:
                logger.warning(f"Could not connect to network {network_name}: {e}")
        new_container.start()

        logger.info(f"Recreated container {name}: {container_id[:12]} -> {new_container.id[:12]}")
        return new_container.id

    def get_published_port(self, container_id: str, container_port: str) -> int | None:
        """Host port Docker bound to ``container_port`` (e.g. ``"6080/tcp"``)."""
        container = self._get_container(container_id)
        container.reload()
        bindings = container.ports.get(container_port) or []
        for binding in bindings:
            if binding.get("HostPort"):
                return int(binding["HostPort"])
        return None

    # =========================================================================
    # Exec
    # =========================================================================

    def send_command_to_container(
        self,
        container_id: str,
        command: str,
        input: str | list[str] | None = None,
        check_exit_code: bool = False,
    ) -> str:
        """
        Run ``command`` inside the container and return stdout+stderr.

        ``command`` is split with shell quoting rules (not run through a
        shell). Each ``input`` line is written to stdin followed by a newline.
        """
        container = self._get_container(container_id)
        cmd = shlex.split(command.strip())

        if input is None:
            exit_code, output = container.exec_run(cmd, stdout=True, stderr=True, tty=False)
            result = ExecResult(exit_code, (output or b"").decode("utf-8", errors="replace").strip())
        else:
            result = self._exec_with_stdin(container.id, cmd, input)

        if check_exit_code and result.exit_code not in (0, None):
            raise RuntimeError(f"Command failed with exit code {result.exit_code}: {result.output}")
        return result.output

    def _exec_with_stdin(self, container_id: str, cmd: list[str], input: str | list[str]) -> ExecResult:
        api = self.client.api
        exec_id = api.exec_create(container_id, cmd, stdin=True, stdout=True, stderr=True, tty=False)["Id"]
        sock = api.exec_start(exec_id, socket=True)
        raw = getattr(sock, "_sock", sock)

        lines = input if isinstance(input, list) else [input]
        payload = "".join(line if line.endswith("\n") else f"{line}\n" for line in lines)
        try:
            raw.sendall(payload.encode("utf-8"))
            raw.shutdown(socket.SHUT_WR)
        except (BrokenPipeError, ConnectionResetError):
            # Process exited before consuming stdin
            pass

        chunks = [data for _, data in frames_iter(sock, tty=False)]
        sock.close()
        output = b"".join(chunks).decode("utf-8", errors="replace").strip()
        exit_code = api.exec_inspect(exec_id).get("ExitCode")
        return ExecResult(exit_code, output)

    def read_file_from_container(self, container_id: str, path: str) -> str:
        return self.send_command_to_container(container_id, f"cat {shlex.quote(path)}")

    def follow_container_logs(self, container_id: str, tail: int = 100) -> CancellableStream:
        """Raw log stream: the last ``tail`` historical chunks, then live output.

        Closing the returned stream ends the follow and unblocks any reader.
        """
        container = self._get_container(container_id)
        return container.logs(stream=True, follow=True, tail=tail, stdout=True, stderr=True)

    # =========================================================================
    # Networks
    # =========================================================================

    def create_network(self, name: str) -> str:
        network = self.client.networks.create(name, driver="bridge")
        return network.id

    def delete_network(self, network_id: str) -> None:
        try:
            self.client.networks.get(network_id).remove()
        except NotFound:
            logger.debug(f"Network {network_id} was already removed")
