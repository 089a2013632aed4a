"""
Agent lifecycle: container provisioning, repository checkout and sidecars.

Creating an agent starts a worker container for the agent's provider, clones
the configured git repository into ``/app`` and optionally starts a VNC
(virtual workspace) and an SSH sidecar sharing the same volume.
"""

import base64
import logging
import re
import shlex
import uuid
from urllib.parse import urlparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed25519, rsa
from sqlalchemy.orm import Session

from shared.errors import APIException, BadRequestError, NotFoundError

from ..config.settings import ManagerSettings
from ..models import Agent
from ..providers.agents import AgentProvider, AgentProviderFactory
from ..providers.pipelines import PipelineProviderFactory
from ..repositories import AgentRepository
from ..schemas import (
    AgentResponse,
    CreateAgentRequest,
    CreateAgentResponse,
    GitInfo,
    PortCredentials,
    UpdateAgentRequest,
)
from .common import require_agent
from .deployments_service import DeploymentsService
from .docker_service import DockerService, PortBinding, VolumeBinding
from .passwords import generate_password, hash_password, verify_password

logger = logging.getLogger(__name__)

WORKSPACE_PATH = "/app"
SSH_DIR = "/root/.ssh"
VNC_PORT = "6080/tcp"
SSH_PORT = "22/tcp"

INVALID_KEY_MESSAGE = "Invalid SSH private key. Ensure it is in PEM or OpenSSH format without a passphrase."


def to_agent_response(agent: Agent) -> AgentResponse:
    response = AgentResponse.model_validate(agent)
    if agent.vnc_container_id and agent.vnc_host_port and agent.vnc_password:
        response.vnc = PortCredentials(port=agent.vnc_host_port, password=agent.vnc_password)
    if agent.ssh_container_id and agent.ssh_host_port and agent.ssh_password:
        response.ssh = PortCredentials(port=agent.ssh_host_port, password=agent.ssh_password)
    if agent.git_repository_url:
        response.git = GitInfo(repository_url=agent.git_repository_url)
    return response


def is_ssh_url(url: str) -> bool:
    return url.startswith("git@") or url.startswith("ssh://")


def ssh_host_and_port(url: str) -> tuple[str, int | None]:
    """Host (and explicit port) of ``git@host:path`` or ``ssh://user@host:port/path``."""
    if url.startswith("ssh://"):
        parsed = urlparse(url)
        return parsed.hostname or "", parsed.port
    host = url.split("@", 1)[1].split(":", 1)[0]
    return host, None


def load_private_key(pem: str) -> tuple[str, str]:
    """
    Validate an unencrypted SSH private key.

    Returns ``(filename, openssh_text)`` where filename follows the
    ``id_<type>`` convention ssh uses to pick keys up by default.
    """
    data = pem.replace("\\n", "\n").strip().encode() + b"\n"
    try:
        if b"OPENSSH PRIVATE KEY" in data:
            key = serialization.load_ssh_private_key(data, password=None)
        else:
            key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        raise BadRequestError(INVALID_KEY_MESSAGE) from e

    if isinstance(key, rsa.RSAPrivateKey):
        filename = "id_rsa"
    elif isinstance(key, ed25519.Ed25519PrivateKey):
        filename = "id_ed25519"
    elif isinstance(key, ec.EllipticCurvePrivateKey):
        filename = "id_ecdsa"
    elif isinstance(key, dsa.DSAPrivateKey):
        filename = "id_dsa"
    else:
        raise BadRequestError(INVALID_KEY_MESSAGE)

    text = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        serialization.NoEncryption(),
    ).decode()
    return filename, text


def container_name(name: str, suffix: str = "") -> str:
    """Docker-safe container name derived from the agent name."""
    slug = re.sub(r"[^a-zA-Z0-9_.-]+", "-", name).strip("-.") or "agent"
    return f"agenstra-{slug.lower()}{suffix}-{uuid.uuid4().hex[:6]}"


class AgentsService:
    def __init__(
        self,
        session: Session,
        docker_service: DockerService,
        provider_factory: AgentProviderFactory,
        pipeline_factory: PipelineProviderFactory,
        settings: ManagerSettings,
    ):
        self.session = session
        self.docker_service = docker_service
        self.provider_factory = provider_factory
        self.pipeline_factory = pipeline_factory
        self.settings = settings

    # =========================================================================
    # Queries
    # =========================================================================

    def find_all(self, limit: int = 10, offset: int = 0) -> list[AgentResponse]:
        return [to_agent_response(agent) for agent in AgentRepository.list_all(self.session, limit=limit, offset=offset)]

    def find_one(self, agent_id: uuid.UUID) -> AgentResponse:
        return to_agent_response(require_agent(self.session, agent_id))

    def verify_credentials(self, agent_id: uuid.UUID, password: str) -> bool:
        agent = AgentRepository.get(self.session, agent_id)
        if agent is None:
            return False
        return verify_password(password, agent.hashed_password)

    # =========================================================================
    # Create
    # =========================================================================

    def _resolve_provider(self, agent_type: str) -> AgentProvider:
        if not self.provider_factory.has_provider(agent_type):
            available = ", ".join(self.provider_factory.get_registered_types()) or "none"
            raise BadRequestError(f"Agent type '{agent_type}' is not available. Available types: {available}")
        return self.provider_factory.get_provider(agent_type)

    def create(self, dto: CreateAgentRequest) -> CreateAgentResponse:
        if AgentRepository.get_by_name(self.session, dto.name) is not None:
            raise BadRequestError(f"Agent with name '{dto.name}' already exists")

        provider = self._resolve_provider(dto.agent_type or "cursor")

        repository_url = dto.git_repository_url or self.settings.GIT_REPOSITORY_URL
        if not repository_url:
            raise BadRequestError("Git repository URL not configured. Please set GIT_REPOSITORY_URL.")

        if dto.deployment_configuration and not self.pipeline_factory.has_provider(
            dto.deployment_configuration.provider_type
        ):
            raise BadRequestError(
                f"Pipeline provider '{dto.deployment_configuration.provider_type}' is not available"
            )
        if dto.deployment_configuration:
            if not dto.deployment_configuration.repository_id.strip():
                raise BadRequestError("Repository ID is required")
            if not dto.deployment_configuration.provider_token.strip():
                raise BadRequestError("Provider token is required")

        password = generate_password()
        volume_path = f"{self.settings.AGENTS_VOLUME_ROOT}/{uuid.uuid4()}"
        created: list[str] = []
        network_id: str | None = None
        saved = False

        agent = Agent(
            name=dto.name,
            description=dto.description,
            hashed_password=hash_password(password),
            volume_path=volume_path,
            agent_type=provider.get_type(),
            container_type=dto.container_type.value,
            git_repository_url=repository_url,
        )

        try:
            if dto.create_virtual_workspace:
                network_id = self.docker_service.create_network(container_name(dto.name, "-net"))
                agent.vnc_network_id = network_id

            agent.container_id = self.docker_service.create_container(
                image=provider.get_docker_image(),
                name=container_name(dto.name),
                env=self._container_env(dto.name, repository_url),
                volumes=[VolumeBinding(volume_path, WORKSPACE_PATH)],
                network=network_id,
                labels={"agenstra.agent": dto.name},
            )
            created.append(agent.container_id)

            self._prepare_git_credentials(agent.container_id, repository_url)
            self._clone_repository(agent.container_id, repository_url)

            if dto.create_virtual_workspace:
                agent.vnc_password = generate_password()
                agent.vnc_container_id = self.docker_service.create_container(
                    image=provider.get_virtual_workspace_docker_image(),
                    name=container_name(dto.name, "-vnc"),
                    env={"VNC_PASSWORD": agent.vnc_password},
                    volumes=[VolumeBinding(volume_path, WORKSPACE_PATH)],
                    ports=[PortBinding(6080)],
                    network=network_id,
                )
                created.append(agent.vnc_container_id)
                agent.vnc_host_port = self.docker_service.get_published_port(agent.vnc_container_id, VNC_PORT)

            if dto.create_ssh_connection:
                agent.ssh_password = generate_password()
                agent.ssh_container_id = self.docker_service.create_container(
                    image=provider.get_ssh_connection_docker_image(),
                    name=container_name(dto.name, "-ssh"),
                    env={"SSH_PASSWORD": agent.ssh_password},
                    volumes=[VolumeBinding(volume_path, WORKSPACE_PATH)],
                    ports=[PortBinding(22)],
                )
                created.append(agent.ssh_container_id)
                agent.ssh_host_port = self.docker_service.get_published_port(agent.ssh_container_id, SSH_PORT)

            AgentRepository.save(self.session, agent)
            saved = True
            if dto.deployment_configuration:
                DeploymentsService(self.session, self.pipeline_factory).upsert_configuration(
                    agent.id, dto.deployment_configuration
                )
        except Exception as e:
            if saved:
                AgentRepository.delete(self.session, agent)
            self._cleanup(created, network_id)
            if isinstance(e, APIException):
                raise
            logger.error(f"Failed to provision agent {dto.name}: {e}")
            raise BadRequestError(f"Failed to create agent: {e}") from e

        try:
            provider.send_initialization(str(agent.id), agent.container_id)
        except Exception as e:
            logger.warning(f"Failed to initialize {provider.get_type()} agent {agent.id}: {e}")

        logger.info(f"Created agent {agent.name} ({agent.id}) with container {agent.container_id[:12]}")
        response = to_agent_response(agent)
        return CreateAgentResponse(**response.model_dump(), password=password)

    def _container_env(self, name: str, repository_url: str) -> dict[str, str]:
        return {
            "AGENT_NAME": name,
            "CURSOR_API_KEY": self.settings.CURSOR_API_KEY,
            "GIT_REPOSITORY_URL": repository_url,
            "GIT_USERNAME": self.settings.GIT_USERNAME,
            "GIT_TOKEN": self.settings.GIT_TOKEN,
            "GIT_PASSWORD": self.settings.GIT_PASSWORD,
            "GIT_PRIVATE_KEY": self.settings.GIT_PRIVATE_KEY,
        }

    def _run(self, container_id: str, script: str, input: str | None = None) -> str:
        return self.docker_service.send_command_to_container(
            container_id, f"sh -c {shlex.quote(script)}", input=input, check_exit_code=True
        )

    def _prepare_git_credentials(self, container_id: str, repository_url: str) -> None:
        if is_ssh_url(repository_url):
            if not self.settings.GIT_PRIVATE_KEY:
                raise BadRequestError("SSH repository URL requires GIT_PRIVATE_KEY to be configured")
            filename, key_text = load_private_key(self.settings.GIT_PRIVATE_KEY)
            key_path = f"{SSH_DIR}/{filename}"
            self._run(container_id, f"mkdir -p {SSH_DIR} && chmod 700 {SSH_DIR}")
            self._run(
                container_id,
                f"base64 -d > {key_path} && chmod 600 {key_path}",
                input=base64.b64encode(key_text.encode()).decode(),
            )
            host, port = ssh_host_and_port(repository_url)
            port_flag = f"-p {port} " if port else ""
            self._run(container_id, f"ssh-keyscan {port_flag}{shlex.quote(host)} >> {SSH_DIR}/known_hosts || true")
            return

        secret = self.settings.GIT_TOKEN or self.settings.GIT_PASSWORD
        if not self.settings.GIT_USERNAME or not secret:
            logger.warning("Git credentials not configured; cloning without .netrc")
            return

        domain = urlparse(repository_url).hostname or ""
        netrc = f"machine {domain}\nlogin {self.settings.GIT_USERNAME}\npassword {secret}\n"
        self._run(
            container_id,
            "base64 -d > /root/.netrc && chmod 600 /root/.netrc",
            input=base64.b64encode(netrc.encode()).decode(),
        )

    def _clone_repository(self, container_id: str, repository_url: str) -> None:
        try:
            self._run(container_id, f"git clone {shlex.quote(repository_url)} {WORKSPACE_PATH}")
        except RuntimeError as e:
            raise BadRequestError(f"Failed to clone repository: {e}") from e

    def _cleanup(self, container_ids: list[str], network_id: str | None) -> None:
        for container_id in container_ids:
            try:
                self.docker_service.delete_container(container_id)
            except Exception as e:
                logger.error(f"Failed to clean up container {container_id}: {e}")
        if network_id:
            try:
                self.docker_service.delete_network(network_id)
            except Exception as e:
                logger.error(f"Failed to clean up network {network_id}: {e}")

    # =========================================================================
    # Update / delete
    # =========================================================================

    def update(self, agent_id: uuid.UUID, dto: UpdateAgentRequest) -> AgentResponse:
        agent = require_agent(self.session, agent_id)
        if dto.name is not None and dto.name != agent.name:
            if AgentRepository.get_by_name(self.session, dto.name) is not None:
                raise BadRequestError(f"Agent with name '{dto.name}' already exists")
            agent.name = dto.name
        if dto.description is not None:
            agent.description = dto.description
        self.session.flush()
        return to_agent_response(agent)

    def remove(self, agent_id: uuid.UUID) -> None:
        agent = require_agent(self.session, agent_id)
        for container_id in (agent.container_id, agent.vnc_container_id, agent.ssh_container_id):
            if not container_id:
                continue
            try:
                self.docker_service.delete_container(container_id)
            except NotFoundError:
                logger.debug(f"Container {container_id} for agent {agent_id} is already gone")
        if agent.vnc_network_id:
            self.docker_service.delete_network(agent.vnc_network_id)
        AgentRepository.delete(self.session, agent)
        logger.info(f"Removed agent {agent.name} ({agent_id})")
