"""Lookups shared by the agent-scoped services."""

import uuid

from sqlalchemy.orm import Session

from shared.errors import NotFoundError

from ..models import Agent
from ..repositories import AgentRepository


def require_agent(session: Session, agent_id: uuid.UUID) -> Agent:
    agent = AgentRepository.get(session, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent with ID '{agent_id}' not found")
    return agent


def require_container(session: Session, agent_id: uuid.UUID) -> str:
    """Container id of the agent, or NotFound when it has none."""
    agent = require_agent(session, agent_id)
    if not agent.container_id:
        raise NotFoundError(f"Agent {agent_id} has no associated container")
    return agent.container_id
