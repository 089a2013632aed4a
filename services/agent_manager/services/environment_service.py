"""
Per-agent environment variables.

Every mutation is followed by ``reconcile``: the agent container is recreated
with the current variable set and the chat history is cleared, because the
agent session is bound to the old container.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from shared.errors import NotFoundError

from ..models import AgentEnvironmentVariable
from ..repositories import AgentMessageRepository, EnvironmentVariableRepository
from .common import require_agent
from .docker_service import DockerService

logger = logging.getLogger(__name__)


class AgentEnvironmentVariablesService:
    def __init__(self, session: Session, docker_service: DockerService):
        self.session = session
        self.docker_service = docker_service

    def _get(self, env_var_id: uuid.UUID) -> AgentEnvironmentVariable:
        row = EnvironmentVariableRepository.get(self.session, env_var_id)
        if row is None:
            raise NotFoundError(f"Environment variable with ID '{env_var_id}' not found")
        return row

    def create(self, agent_id: uuid.UUID, variable: str, content: str) -> AgentEnvironmentVariable:
        require_agent(self.session, agent_id)
        row = EnvironmentVariableRepository.create(self.session, agent_id=agent_id, variable=variable, content=content)
        self.reconcile(agent_id)
        return row

    def update(self, env_var_id: uuid.UUID, variable: str, content: str) -> AgentEnvironmentVariable:
        row = self._get(env_var_id)
        row.variable = variable
        row.content = content
        self.session.flush()
        self.reconcile(row.agent_id)
        return row

    def delete(self, env_var_id: uuid.UUID) -> None:
        row = self._get(env_var_id)
        agent_id = row.agent_id
        EnvironmentVariableRepository.delete(self.session, row)
        self.reconcile(agent_id)

    def list(self, agent_id: uuid.UUID, limit: int = 50, offset: int = 0) -> list[AgentEnvironmentVariable]:
        require_agent(self.session, agent_id)
        return EnvironmentVariableRepository.list_for_agent(self.session, agent_id, limit=limit, offset=offset)

    def count(self, agent_id: uuid.UUID) -> int:
        require_agent(self.session, agent_id)
        return EnvironmentVariableRepository.count_for_agent(self.session, agent_id)

    def delete_all(self, agent_id: uuid.UUID) -> int:
        require_agent(self.session, agent_id)
        deleted = EnvironmentVariableRepository.delete_for_agent(self.session, agent_id)
        logger.info(f"Deleted {deleted} environment variables for agent {agent_id}")
        self.reconcile(agent_id)
        return deleted

    def reconcile(self, agent_id: uuid.UUID) -> None:
        agent = require_agent(self.session, agent_id)
        if not agent.container_id:
            logger.warning(f"Agent {agent_id} has no container ID, skipping environment variable reconciliation")
            return

        variables = EnvironmentVariableRepository.list_for_agent(self.session, agent_id, limit=None)
        env = {v.variable: v.content or "" for v in variables}

        old_container_id = agent.container_id
        agent.container_id = self.docker_service.update_container(old_container_id, env)
        AgentMessageRepository.delete_for_agent(self.session, agent_id)
        self.session.flush()

        logger.info(
            f"Reconciled {len(variables)} environment variables for agent {agent_id} "
            f"(container {old_container_id[:12]} -> {agent.container_id[:12]})"
        )
