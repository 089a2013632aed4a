"""
Environment Router - per-agent container environment variables.

Every mutation recreates the agent container (see
``AgentEnvironmentVariablesService.reconcile``).
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_environment_service
from ..schemas import EnvironmentVariableRequest, EnvironmentVariableResponse
from ..services.environment_service import AgentEnvironmentVariablesService

router = APIRouter(
    prefix="/api/agents/{agent_id}/environment",
    tags=["environment"],
    dependencies=[Depends(require_auth)],
)


@router.get("", response_model=list[EnvironmentVariableResponse])
def list_variables(
    agent_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: AgentEnvironmentVariablesService = Depends(get_environment_service),
):
    return service.list(agent_id, limit=limit, offset=offset)


@router.get("/count")
def count_variables(
    agent_id: uuid.UUID, service: AgentEnvironmentVariablesService = Depends(get_environment_service)
) -> dict:
    return {"count": service.count(agent_id)}


@router.post("", response_model=EnvironmentVariableResponse, status_code=status.HTTP_201_CREATED)
def create_variable(
    agent_id: uuid.UUID,
    body: EnvironmentVariableRequest,
    service: AgentEnvironmentVariablesService = Depends(get_environment_service),
):
    return service.create(agent_id, body.variable, body.content)


@router.put("/{env_var_id}", response_model=EnvironmentVariableResponse)
def update_variable(
    agent_id: uuid.UUID,
    env_var_id: uuid.UUID,
    body: EnvironmentVariableRequest,
    service: AgentEnvironmentVariablesService = Depends(get_environment_service),
):
    return service.update(env_var_id, body.variable, body.content)


@router.delete("/{env_var_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_variable(
    agent_id: uuid.UUID,
    env_var_id: uuid.UUID,
    service: AgentEnvironmentVariablesService = Depends(get_environment_service),
) -> None:
    service.delete(env_var_id)


@router.delete("")
def delete_all_variables(
    agent_id: uuid.UUID, service: AgentEnvironmentVariablesService = Depends(get_environment_service)
) -> dict:
    return {"deletedCount": service.delete_all(agent_id)}
