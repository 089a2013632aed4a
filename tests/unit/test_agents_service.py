"""
Tests for agent provisioning and per-agent environment variables.

Docker is the MagicMock from conftest; the database is in-memory SQLite.
"""
import base64
import uuid

import pytest

from services.agent_manager.main import build_pipeline_factory, build_provider_factory
from services.agent_manager.repositories import (
    AgentMessageRepository,
    AgentRepository,
    DeploymentConfigurationRepository,
)
from services.agent_manager.schemas import CreateAgentRequest, DeploymentConfigurationInput, UpdateAgentRequest
from services.agent_manager.services.agents_service import AgentsService
from services.agent_manager.services.deployments_service import DeploymentsService
from services.agent_manager.services.environment_service import AgentEnvironmentVariablesService
from shared.errors import BadRequestError, NotFoundError


@pytest.fixture
def session(manager_db):
    with manager_db.session() as session:
        yield session


def make_service(session, docker_service, settings):
    return AgentsService(
        session,
        docker_service,
        build_provider_factory(docker_service, settings),
        build_pipeline_factory(),
        settings,
    )


@pytest.fixture
def service(session, docker_service, manager_settings):
    return make_service(session, docker_service, manager_settings)


def executed_scripts(docker_service) -> list[str]:
    return [call.args[1] for call in docker_service.send_command_to_container.call_args_list]


class TestCreateAgent:
    """Provisioning containers, sidecars and credentials."""

    def test_create_with_workspace_and_ssh(self, service, docker_service, session):
        """The main container, VNC and SSH sidecars are created and recorded."""
        result = service.create(CreateAgentRequest(name="builder"))

        assert len(result.password) == 16
        assert result.agent_type == "cursor"
        assert result.vnc.port == 49152
        assert result.ssh.port == 49152
        assert result.git.repository_url == "https://github.com/example/workspace.git"

        agent = AgentRepository.get(session, result.id)
        assert agent.container_id.startswith("container0001")
        assert agent.vnc_container_id.startswith("container0002")
        assert agent.ssh_container_id.startswith("container0003")
        assert agent.vnc_network_id == "network0001"
        assert agent.hashed_password != result.password
        assert service.verify_credentials(result.id, result.password)
        assert not service.verify_credentials(result.id, "wrong")

    def test_repository_is_cloned(self, service, docker_service):
        """The repository is cloned into the workspace of the main container."""
        service.create(CreateAgentRequest(name="builder", create_virtual_workspace=False, create_ssh_connection=False))
        assert any("git clone" in script and "/app" in script for script in executed_scripts(docker_service))
        docker_service.create_network.assert_not_called()
        assert docker_service.create_container.call_count == 1

    def test_netrc_written_with_credentials(self, session, docker_service, manager_settings):
        """HTTPS remotes get a .netrc for the repository host."""
        settings = manager_settings.model_copy(update={"GIT_USERNAME": "bot", "GIT_TOKEN": "ghp_x"})
        make_service(session, docker_service, settings).create(
            CreateAgentRequest(name="builder", create_virtual_workspace=False, create_ssh_connection=False)
        )
        inputs = [
            call.kwargs.get("input")
            for call in docker_service.send_command_to_container.call_args_list
            if call.kwargs.get("input") and ".netrc" in call.args[1]
        ]
        assert base64.b64decode(inputs[0]).decode() == "machine github.com\nlogin bot\npassword ghp_x\n"

    def test_duplicate_name(self, service):
        """Agent names are unique."""
        service.create(CreateAgentRequest(name="builder"))
        with pytest.raises(BadRequestError, match="Agent with name 'builder' already exists"):
            service.create(CreateAgentRequest(name="builder"))

    def test_unknown_agent_type(self, service):
        """Unknown types list the registered ones."""
        with pytest.raises(BadRequestError, match="Available types: cursor, opencode"):
            service.create(CreateAgentRequest(name="builder", agent_type="vim"))

    def test_missing_repository(self, session, docker_service, manager_settings):
        """A repository URL is required from the request or settings."""
        settings = manager_settings.model_copy(update={"GIT_REPOSITORY_URL": ""})
        with pytest.raises(BadRequestError, match="GIT_REPOSITORY_URL"):
            make_service(session, docker_service, settings).create(CreateAgentRequest(name="builder"))

    def test_failure_cleans_up(self, service, docker_service, session):
        """Containers and the network created before a failure are removed."""
        docker_service.get_published_port.side_effect = RuntimeError("port not published")

        with pytest.raises(BadRequestError, match="Failed to create agent: port not published"):
            service.create(CreateAgentRequest(name="builder"))

        removed = [call.args[0] for call in docker_service.delete_container.call_args_list]
        assert [cid[:13] for cid in removed] == ["container0001", "container0002"]
        docker_service.delete_network.assert_called_once_with("network0001")
        assert AgentRepository.get_by_name(session, "builder") is None

    @pytest.mark.parametrize(
        "field, message",
        [("repository_id", "Repository ID is required"), ("provider_token", "Provider token is required")],
    )
    def test_incomplete_deployment_configuration(self, service, docker_service, field, message):
        """Deployment configuration is validated before anything is provisioned."""
        config = {"provider_type": "github", "repository_id": "acme/app", "provider_token": "ghp_x", field: " "}
        with pytest.raises(BadRequestError, match=message):
            service.create(
                CreateAgentRequest(name="builder", deployment_configuration=DeploymentConfigurationInput(**config))
            )
        docker_service.create_network.assert_not_called()
        docker_service.create_container.assert_not_called()

    def test_create_with_deployment_configuration(self, service, session):
        result = service.create(
            CreateAgentRequest(
                name="builder",
                deployment_configuration=DeploymentConfigurationInput(
                    provider_type="github", repository_id="acme/app", provider_token="ghp_x"
                ),
            )
        )
        config = DeploymentConfigurationRepository.get_for_agent(session, result.id)
        assert config.repository_id == "acme/app"
        assert config.provider_token == "ghp_x"

    def test_deployment_configuration_failure_cleans_up(self, service, docker_service, session, monkeypatch):
        """A failure while saving the configuration removes containers and the agent row."""
        def fail(self, agent_id, dto):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(DeploymentsService, "upsert_configuration", fail)

        with pytest.raises(BadRequestError, match="Failed to create agent: database is locked"):
            service.create(
                CreateAgentRequest(
                    name="builder",
                    deployment_configuration=DeploymentConfigurationInput(
                        provider_type="github", repository_id="acme/app", provider_token="ghp_x"
                    ),
                )
            )

        assert docker_service.delete_container.call_count == 3
        docker_service.delete_network.assert_called_once_with("network0001")
        assert AgentRepository.get_by_name(session, "builder") is None

    def test_ssh_remote_requires_key(self, service, docker_service):
        """SSH remotes need GIT_PRIVATE_KEY; the error is passed through unchanged."""
        with pytest.raises(BadRequestError, match="requires GIT_PRIVATE_KEY"):
            service.create(CreateAgentRequest(name="builder", git_repository_url="git@github.com:acme/app.git"))
        docker_service.delete_container.assert_called_once()

    def test_initialization_failure_is_tolerated(self, service, docker_service):
        """A failing initialization message does not fail creation."""
        def fail_on_init(container_id, command, input=None, check_exit_code=False):
            if command.startswith("cursor-agent"):
                raise RuntimeError("agent offline")
            return ""

        docker_service.send_command_to_container.side_effect = fail_on_init
        result = service.create(CreateAgentRequest(name="builder"))
        assert result.name == "builder"


class TestUpdateAndRemove:
    """Renaming and deleting agents."""

    def test_rename_conflict(self, service):
        """Renaming onto an existing name is rejected."""
        service.create(CreateAgentRequest(name="one"))
        second = service.create(CreateAgentRequest(name="two"))
        with pytest.raises(BadRequestError, match="already exists"):
            service.update(second.id, UpdateAgentRequest(name="one"))

    def test_update_description(self, service):
        created = service.create(CreateAgentRequest(name="one"))
        updated = service.update(created.id, UpdateAgentRequest(description="builds things"))
        assert updated.description == "builds things"
        assert updated.name == "one"

    def test_remove_tolerates_missing_containers(self, service, docker_service, session):
        """Containers already gone do not block removal."""
        created = service.create(CreateAgentRequest(name="one"))
        docker_service.delete_container.side_effect = [NotFoundError("gone"), None, None]

        service.remove(created.id)

        assert docker_service.delete_container.call_count == 3
        docker_service.delete_network.assert_called_once_with("network0001")
        assert AgentRepository.get(session, created.id) is None

    def test_unknown_agent(self, service):
        with pytest.raises(NotFoundError):
            service.find_one(uuid.uuid4())


class TestEnvironmentVariables:
    """Variable CRUD and container reconciliation."""

    @pytest.fixture
    def agent(self, session):
        return AgentRepository.create(
            session, name="env-agent", hashed_password="x", container_id="container9999" + "0" * 51
        )

    @pytest.fixture
    def env_service(self, session, docker_service):
        return AgentEnvironmentVariablesService(session, docker_service)

    def test_create_recreates_container(self, env_service, docker_service, agent):
        """The container is recreated with the full variable set."""
        env_service.create(agent.id, "API_URL", "https://api.example.com")
        env_service.create(agent.id, "DEBUG", "1")

        last = docker_service.update_container.call_args
        assert last.args[1] == {"API_URL": "https://api.example.com", "DEBUG": "1"}
        assert agent.container_id.startswith("recreated")

    def test_reconcile_clears_chat_history(self, env_service, session, agent):
        """Chat history is bound to the old container and is removed."""
        AgentMessageRepository.create(session, agent_id=agent.id, actor="user", message="hi", filtered=False)
        env_service.create(agent.id, "DEBUG", "1")
        assert AgentMessageRepository.count_for_agent(session, agent.id) == 0

    def test_update_and_delete(self, env_service, docker_service, agent):
        row = env_service.create(agent.id, "DEBUG", "1")
        env_service.update(row.id, "DEBUG", "0")
        assert docker_service.update_container.call_args.args[1] == {"DEBUG": "0"}
        env_service.delete(row.id)
        assert docker_service.update_container.call_args.args[1] == {}
        assert env_service.count(agent.id) == 0

    def test_delete_all(self, env_service, agent):
        env_service.create(agent.id, "A", "1")
        env_service.create(agent.id, "B", "2")
        assert env_service.delete_all(agent.id) == 2
        assert env_service.list(agent.id) == []

    def test_unknown_variable(self, env_service):
        with pytest.raises(NotFoundError, match="Environment variable"):
            env_service.update(uuid.uuid4(), "A", "1")

    def test_agent_without_container(self, env_service, docker_service, session):
        """Agents without a container are skipped with a warning."""
        agent = AgentRepository.create(session, name="bare", hashed_password="x")
        env_service.create(agent.id, "A", "1")
        docker_service.update_container.assert_not_called()
