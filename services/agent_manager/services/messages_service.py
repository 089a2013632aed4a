"""Chat history persistence for agents."""

import json
import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from ..models import AgentMessage
from ..repositories import AgentMessageRepository

logger = logging.getLogger(__name__)


class AgentMessagesService:
    def __init__(self, session: Session):
        self.session = session

    def create_user_message(self, agent_id: uuid.UUID, text: str, filtered: bool = False) -> AgentMessage:
        return AgentMessageRepository.create(
            self.session, agent_id=agent_id, actor="user", message=text.strip(), filtered=filtered
        )

    def create_agent_message(self, agent_id: uuid.UUID, response: Any, filtered: bool = False) -> AgentMessage:
        message = response if isinstance(response, str) else json.dumps(response)
        return AgentMessageRepository.create(
            self.session, agent_id=agent_id, actor="agent", message=message, filtered=filtered
        )

    def get_chat_history(self, agent_id: uuid.UUID, limit: int = 50, offset: int = 0) -> list[AgentMessage]:
        return AgentMessageRepository.list_for_agent(self.session, agent_id, limit=limit, offset=offset)

    def count_messages(self, agent_id: uuid.UUID) -> int:
        return AgentMessageRepository.count_for_agent(self.session, agent_id)

    def delete_all_messages(self, agent_id: uuid.UUID) -> int:
        deleted = AgentMessageRepository.delete_for_agent(self.session, agent_id)
        logger.info(f"Deleted {deleted} chat messages for agent {agent_id}")
        return deleted
