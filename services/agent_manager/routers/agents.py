"""
Agents Router - agent CRUD and chat history.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_agents_service, get_messages_service
from ..schemas import (
    AgentResponse,
    ChatMessageResponse,
    CreateAgentRequest,
    CreateAgentResponse,
    UpdateAgentRequest,
)
from ..services.agents_service import AgentsService
from ..services.common import require_agent
from ..services.messages_service import AgentMessagesService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["agents"], dependencies=[Depends(require_auth)])


@router.get("", response_model=list[AgentResponse], response_model_exclude_none=True)
def list_agents(
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: AgentsService = Depends(get_agents_service),
):
    return service.find_all(limit=limit, offset=offset)


@router.post(
    "",
    response_model=CreateAgentResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_agent(body: CreateAgentRequest, service: AgentsService = Depends(get_agents_service)):
    return service.create(body)


@router.get("/{agent_id}", response_model=AgentResponse, response_model_exclude_none=True)
def get_agent(agent_id: uuid.UUID, service: AgentsService = Depends(get_agents_service)):
    return service.find_one(agent_id)


@router.post("/{agent_id}", response_model=AgentResponse, response_model_exclude_none=True)
def update_agent(agent_id: uuid.UUID, body: UpdateAgentRequest, service: AgentsService = Depends(get_agents_service)):
    return service.update(agent_id, body)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_agent(agent_id: uuid.UUID, service: AgentsService = Depends(get_agents_service)) -> None:
    service.remove(agent_id)


@router.get("/{agent_id}/chat", response_model=list[ChatMessageResponse])
def chat_history(
    agent_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    messages: AgentMessagesService = Depends(get_messages_service),
):
    """Chat history, oldest first."""
    require_agent(messages.session, agent_id)
    return messages.get_chat_history(agent_id, limit=limit, offset=offset)
