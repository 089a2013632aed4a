"""Repository classes for agent-controller database operations.

Each repository is stateless and operates on a ``Session`` passed by the
caller (typically a request-scoped session from ``Database.session()``).
"""
from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .models import Client, ClientAgentCredential, ProvisioningReference


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

class ClientRepository:
    """CRUD operations for registered clients."""

    @staticmethod
    def save(session: Session, client: Client) -> Client:
        session.add(client)
        session.flush()
        return client

    @staticmethod
    def get(session: Session, client_id: uuid.UUID) -> Client | None:
        return session.get(Client, client_id)

    @staticmethod
    def get_by_name(session: Session, name: str) -> Client | None:
        return session.scalars(select(Client).where(Client.name == name)).first()

    @staticmethod
    def list_all(session: Session, *, limit: int = 10, offset: int = 0) -> list[Client]:
        """List clients ordered by creation time, newest first."""
        result = session.scalars(
            select(Client).order_by(Client.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.all())

    @staticmethod
    def count(session: Session) -> int:
        return session.scalar(select(func.count()).select_from(Client)) or 0

    @staticmethod
    def delete(session: Session, client: Client) -> None:
        session.delete(client)
        session.flush()


# ---------------------------------------------------------------------------
# Agent credentials
# ---------------------------------------------------------------------------

class ClientAgentCredentialRepository:
    """Agent passwords keyed by (client, agent)."""

    @staticmethod
    def get(session: Session, client_id: uuid.UUID, agent_id: uuid.UUID) -> ClientAgentCredential | None:
        return session.scalars(
            select(ClientAgentCredential).where(
                ClientAgentCredential.client_id == client_id,
                ClientAgentCredential.agent_id == agent_id,
            )
        ).first()

    @staticmethod
    def save(session: Session, credential: ClientAgentCredential) -> ClientAgentCredential:
        session.add(credential)
        session.flush()
        return credential

    @staticmethod
    def delete(session: Session, client_id: uuid.UUID, agent_id: uuid.UUID) -> int:
        result = session.execute(
            delete(ClientAgentCredential).where(
                ClientAgentCredential.client_id == client_id,
                ClientAgentCredential.agent_id == agent_id,
            )
        )
        return result.rowcount or 0

    @staticmethod
    def delete_for_client(session: Session, client_id: uuid.UUID) -> int:
        result = session.execute(delete(ClientAgentCredential).where(ClientAgentCredential.client_id == client_id))
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Provisioning references
# ---------------------------------------------------------------------------

class ProvisioningReferenceRepository:
    """Cloud servers provisioned for clients."""

    @staticmethod
    def save(session: Session, reference: ProvisioningReference) -> ProvisioningReference:
        session.add(reference)
        session.flush()
        return reference

    @staticmethod
    def get_for_client(session: Session, client_id: uuid.UUID) -> ProvisioningReference | None:
        return session.scalars(
            select(ProvisioningReference)
            .where(ProvisioningReference.client_id == client_id)
            .order_by(ProvisioningReference.created_at.desc())
        ).first()

    @staticmethod
    def get_by_server(session: Session, provider_type: str, server_id: str) -> ProvisioningReference | None:
        return session.scalars(
            select(ProvisioningReference).where(
                ProvisioningReference.provider_type == provider_type,
                ProvisioningReference.server_id == server_id,
            )
        ).first()
