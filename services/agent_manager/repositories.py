"""Repository classes for agent-manager database operations.

Each repository is stateless and operates on a ``Session`` passed by the
caller (typically a request-scoped session from ``Database.session()``).
This keeps transaction boundaries explicit.
"""
from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .models import (
    Agent,
    AgentEnvironmentVariable,
    AgentMessage,
    DeploymentConfiguration,
    DeploymentRun,
)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

class AgentRepository:
    """CRUD operations for agents."""

    @staticmethod
    def create(session: Session, **values) -> Agent:
        agent = Agent(**values)
        session.add(agent)
        session.flush()
        return agent

    @staticmethod
    def save(session: Session, agent: Agent) -> Agent:
        session.add(agent)
        session.flush()
        return agent

    @staticmethod
    def get(session: Session, agent_id: uuid.UUID) -> Agent | None:
        return session.get(Agent, agent_id)

    @staticmethod
    def get_by_name(session: Session, name: str) -> Agent | None:
        return session.scalars(select(Agent).where(Agent.name == name)).first()

    @staticmethod
    def list_all(session: Session, *, limit: int = 10, offset: int = 0) -> list[Agent]:
        """List agents ordered by creation time, newest first."""
        result = session.scalars(
            select(Agent).order_by(Agent.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.all())

    @staticmethod
    def delete(session: Session, agent: Agent) -> None:
        session.delete(agent)
        session.flush()


# ---------------------------------------------------------------------------
# Agent messages
# ---------------------------------------------------------------------------

class AgentMessageRepository:
    """Chat history persistence."""

    @staticmethod
    def create(session: Session, *, agent_id: uuid.UUID, actor: str, message: str, filtered: bool) -> AgentMessage:
        row = AgentMessage(agent_id=agent_id, actor=actor, message=message, filtered=filtered)
        session.add(row)
        session.flush()
        return row

    @staticmethod
    def list_for_agent(
        session: Session, agent_id: uuid.UUID, *, limit: int = 50, offset: int = 0
    ) -> list[AgentMessage]:
        """Chat history in chronological order."""
        result = session.scalars(
            select(AgentMessage)
            .where(AgentMessage.agent_id == agent_id)
            .order_by(AgentMessage.created_at.asc(), AgentMessage.id.asc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.all())

    @staticmethod
    def count_for_agent(session: Session, agent_id: uuid.UUID) -> int:
        return session.scalar(
            select(func.count()).select_from(AgentMessage).where(AgentMessage.agent_id == agent_id)
        ) or 0

    @staticmethod
    def delete_for_agent(session: Session, agent_id: uuid.UUID) -> int:
        result = session.execute(delete(AgentMessage).where(AgentMessage.agent_id == agent_id))
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

class EnvironmentVariableRepository:
    """Per-agent environment variable persistence."""

    @staticmethod
    def create(session: Session, *, agent_id: uuid.UUID, variable: str, content: str | None) -> AgentEnvironmentVariable:
        row = AgentEnvironmentVariable(agent_id=agent_id, variable=variable, content=content)
        session.add(row)
        session.flush()
        return row

    @staticmethod
    def get(session: Session, env_var_id: uuid.UUID) -> AgentEnvironmentVariable | None:
        return session.get(AgentEnvironmentVariable, env_var_id)

    @staticmethod
    def list_for_agent(
        session: Session, agent_id: uuid.UUID, *, limit: int | None = 50, offset: int = 0
    ) -> list[AgentEnvironmentVariable]:
        stmt = (
            select(AgentEnvironmentVariable)
            .where(AgentEnvironmentVariable.agent_id == agent_id)
            .order_by(AgentEnvironmentVariable.created_at.asc(), AgentEnvironmentVariable.id.asc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.scalars(stmt).all())

    @staticmethod
    def count_for_agent(session: Session, agent_id: uuid.UUID) -> int:
        return session.scalar(
            select(func.count())
            .select_from(AgentEnvironmentVariable)
            .where(AgentEnvironmentVariable.agent_id == agent_id)
        ) or 0

    @staticmethod
    def delete(session: Session, row: AgentEnvironmentVariable) -> None:
        session.delete(row)
        session.flush()

    @staticmethod
    def delete_for_agent(session: Session, agent_id: uuid.UUID) -> int:
        result = session.execute(
            delete(AgentEnvironmentVariable).where(AgentEnvironmentVariable.agent_id == agent_id)
        )
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Deployments
# ---------------------------------------------------------------------------

class DeploymentConfigurationRepository:
    """One CI/CD configuration per agent."""

    @staticmethod
    def get_for_agent(session: Session, agent_id: uuid.UUID) -> DeploymentConfiguration | None:
        return session.scalars(
            select(DeploymentConfiguration).where(DeploymentConfiguration.agent_id == agent_id)
        ).first()

    @staticmethod
    def save(session: Session, config: DeploymentConfiguration) -> DeploymentConfiguration:
        session.add(config)
        session.flush()
        return config

    @staticmethod
    def delete(session: Session, config: DeploymentConfiguration) -> None:
        session.delete(config)
        session.flush()


class DeploymentRunRepository:
    """Pipeline runs recorded per configuration."""

    @staticmethod
    def get(session: Session, run_id: uuid.UUID) -> DeploymentRun | None:
        return session.get(DeploymentRun, run_id)

    @staticmethod
    def get_by_provider_run_id(
        session: Session, configuration_id: uuid.UUID, provider_run_id: str
    ) -> DeploymentRun | None:
        return session.scalars(
            select(DeploymentRun).where(
                DeploymentRun.configuration_id == configuration_id,
                DeploymentRun.provider_run_id == provider_run_id,
            )
        ).first()

    @staticmethod
    def save(session: Session, run: DeploymentRun) -> DeploymentRun:
        session.add(run)
        session.flush()
        return run

    @staticmethod
    def list_for_configuration(
        session: Session, configuration_id: uuid.UUID, *, limit: int = 50, offset: int = 0
    ) -> list[DeploymentRun]:
        """Runs newest first."""
        result = session.scalars(
            select(DeploymentRun)
            .where(DeploymentRun.configuration_id == configuration_id)
            .order_by(DeploymentRun.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.all())
