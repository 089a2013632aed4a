"""
Environment Router - environment variables of an agent on a client.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_environment_proxy
from ..proxy import ClientAgentEnvironmentVariablesProxyService

router = APIRouter(
    prefix="/api/clients/{client_id}/agents/{agent_id}/environment",
    tags=["environment"],
    dependencies=[Depends(require_auth)],
)


@router.get("")
async def list_variables(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
):
    return await proxy.list(client_id, agent_id, limit=limit, offset=offset)


@router.get("/count")
async def count_variables(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
):
    return await proxy.count(client_id, agent_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_variable(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
):
    return await proxy.create(client_id, agent_id, body)


@router.put("/{env_var_id}")
async def update_variable(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    env_var_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
):
    return await proxy.update(client_id, agent_id, env_var_id, body)


@router.delete("/{env_var_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_variable(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    env_var_id: uuid.UUID,
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
) -> None:
    await proxy.delete(client_id, agent_id, env_var_id)


@router.delete("")
async def delete_all_variables(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    proxy: ClientAgentEnvironmentVariablesProxyService = Depends(get_environment_proxy),
):
    return await proxy.delete_all(client_id, agent_id)
