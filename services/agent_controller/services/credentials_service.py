"""Agent passwords remembered by the controller for WebSocket auto-login."""

import logging
import uuid

from sqlalchemy.orm import Session

from ..models import ClientAgentCredential
from ..repositories import ClientAgentCredentialRepository

logger = logging.getLogger(__name__)


class ClientAgentCredentialsService:
    def __init__(self, session: Session):
        self.session = session

    def save(self, client_id: uuid.UUID, agent_id: uuid.UUID, password: str) -> ClientAgentCredential:
        credential = ClientAgentCredentialRepository.get(self.session, client_id, agent_id)
        if credential is None:
            credential = ClientAgentCredential(client_id=client_id, agent_id=agent_id)
        credential.password = password
        return ClientAgentCredentialRepository.save(self.session, credential)

    def get(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> ClientAgentCredential | None:
        return ClientAgentCredentialRepository.get(self.session, client_id, agent_id)

    def delete(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> None:
        ClientAgentCredentialRepository.delete(self.session, client_id, agent_id)

    def delete_all_for_client(self, client_id: uuid.UUID) -> int:
        deleted = ClientAgentCredentialRepository.delete_for_client(self.session, client_id)
        logger.info(f"Deleted {deleted} stored agent credentials for client {client_id}")
        return deleted
