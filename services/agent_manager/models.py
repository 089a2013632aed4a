"""SQLAlchemy ORM models for the agent-manager database.

Tables:
    agents                       -- agent identity, container and sidecar references
    agent_messages               -- persisted chat history per agent
    agent_environment_variables  -- per-agent container environment
    deployment_configurations    -- CI/CD provider binding per agent
    deployment_runs              -- pipeline runs triggered through an agent

Secret columns use ``EncryptedString`` and are stored AES-256-GCM encrypted.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.crypto import EncryptedString
from shared.db import TimestampedModel


class Base(DeclarativeBase):
    """Declarative base for agent-manager ORM models."""


# ---------------------------------------------------------------------------
# agents
# ---------------------------------------------------------------------------

class Agent(TimestampedModel, Base):
    __tablename__ = "agents"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    container_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    volume_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    agent_type: Mapped[str] = mapped_column(String(50), nullable=False, default="cursor")
    container_type: Mapped[str] = mapped_column(String(50), nullable=False, default="generic")
    git_repository_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    vnc_container_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vnc_host_port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vnc_network_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vnc_password: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)

    ssh_container_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ssh_host_port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ssh_password: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)

    messages: Mapped[list[AgentMessage]] = relationship(
        back_populates="agent", cascade="all, delete-orphan", passive_deletes=True
    )
    environment_variables: Mapped[list[AgentEnvironmentVariable]] = relationship(
        back_populates="agent", cascade="all, delete-orphan", passive_deletes=True
    )
    deployment_configuration: Mapped[DeploymentConfiguration | None] = relationship(
        back_populates="agent", cascade="all, delete-orphan", passive_deletes=True, uselist=False
    )


# ---------------------------------------------------------------------------
# agent_messages
# ---------------------------------------------------------------------------

class AgentMessage(TimestampedModel, Base):
    __tablename__ = "agent_messages"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # "user" or "agent"
    actor: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    filtered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    agent: Mapped[Agent] = relationship(back_populates="messages")


# ---------------------------------------------------------------------------
# agent_environment_variables
# ---------------------------------------------------------------------------

class AgentEnvironmentVariable(TimestampedModel, Base):
    __tablename__ = "agent_environment_variables"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variable: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)

    agent: Mapped[Agent] = relationship(back_populates="environment_variables")


# ---------------------------------------------------------------------------
# deployment_configurations / deployment_runs
# ---------------------------------------------------------------------------

class DeploymentConfiguration(TimestampedModel, Base):
    __tablename__ = "deployment_configurations"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    provider_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    repository_id: Mapped[str] = mapped_column(String(255), nullable=False)
    default_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    workflow_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_token: Mapped[str] = mapped_column(EncryptedString, nullable=False)
    provider_base_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    agent: Mapped[Agent] = relationship(back_populates="deployment_configuration")
    runs: Mapped[list[DeploymentRun]] = relationship(
        back_populates="configuration", cascade="all, delete-orphan", passive_deletes=True
    )


class DeploymentRun(TimestampedModel, Base):
    __tablename__ = "deployment_runs"
    __table_args__ = (UniqueConstraint("configuration_id", "provider_run_id", name="uq_deployment_run"),)

    configuration_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("deployment_configurations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_run_id: Mapped[str] = mapped_column(String(255), nullable=False)
    run_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    conclusion: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ref: Mapped[str] = mapped_column(String(255), nullable=False)
    sha: Mapped[str] = mapped_column(String(40), nullable=False)
    workflow_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    workflow_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    html_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    configuration: Mapped[DeploymentConfiguration] = relationship(back_populates="runs")
