"""SQLAlchemy ORM models for the agent-controller database.

Tables:
    clients                   -- registered remote agent-manager endpoints
    client_agent_credentials  -- agent passwords captured when agents are created via proxy
    provisioning_references   -- cloud servers provisioned for a client

Secret columns use ``EncryptedString`` and are stored AES-256-GCM encrypted.
"""
from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.crypto import EncryptedString
from shared.db import TimestampedModel

AUTH_API_KEY = "api_key"
AUTH_KEYCLOAK = "keycloak"


class Base(DeclarativeBase):
    """Declarative base for agent-controller ORM models."""


class Client(TimestampedModel, Base):
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    # "api_key" or "keycloak"
    authentication_type: Mapped[str] = mapped_column(String(20), nullable=False)
    api_key: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)
    keycloak_client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    keycloak_client_secret: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)
    keycloak_realm: Mapped[str | None] = mapped_column(String(255), nullable=True)
    agent_ws_port: Mapped[int | None] = mapped_column(Integer, nullable=True)

    agent_credentials: Mapped[list[ClientAgentCredential]] = relationship(
        back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
    provisioning_references: Mapped[list[ProvisioningReference]] = relationship(
        back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )


class ClientAgentCredential(TimestampedModel, Base):
    __tablename__ = "client_agent_credentials"
    __table_args__ = (UniqueConstraint("client_id", "agent_id", name="uq_client_agent"),)

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False, index=True)
    password: Mapped[str] = mapped_column(EncryptedString, nullable=False)

    client: Mapped[Client] = relationship(back_populates="agent_credentials")


class ProvisioningReference(TimestampedModel, Base):
    __tablename__ = "provisioning_references"
    __table_args__ = (UniqueConstraint("provider_type", "server_id", name="uq_provider_server"),)

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    server_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    server_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    public_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    private_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    # JSON text
    provider_metadata: Mapped[str | None] = mapped_column(Text, nullable=True)

    client: Mapped[Client] = relationship(back_populates="provisioning_references")
