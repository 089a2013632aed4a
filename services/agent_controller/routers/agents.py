"""
Agents Router - agent CRUD on a client's agent-manager.

Payloads are passed through to the remote manager as-is.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_agents_proxy
from ..proxy import ClientAgentProxyService

router = APIRouter(prefix="/api/clients/{client_id}/agents", tags=["agents"], dependencies=[Depends(require_auth)])


@router.get("")
async def list_agents(
    client_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    proxy: ClientAgentProxyService = Depends(get_agents_proxy),
):
    return await proxy.get_client_agents(client_id, limit=limit, offset=offset)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_agent(
    client_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentProxyService = Depends(get_agents_proxy),
):
    return await proxy.create_client_agent(client_id, body)


@router.get("/{agent_id}")
async def get_agent(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    proxy: ClientAgentProxyService = Depends(get_agents_proxy),
):
    return await proxy.get_client_agent(client_id, agent_id)


@router.post("/{agent_id}")
async def update_agent(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentProxyService = Depends(get_agents_proxy),
):
    return await proxy.update_client_agent(client_id, agent_id, body)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    proxy: ClientAgentProxyService = Depends(get_agents_proxy),
) -> None:
    await proxy.delete_client_agent(client_id, agent_id)
