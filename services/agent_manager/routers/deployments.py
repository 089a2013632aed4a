"""
Deployments Router - CI/CD configuration, browsing and pipeline runs.

Repository ids may contain ``/`` (``owner/repo``, GitLab group paths), so
they are matched with ``{repository_id:path}``.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_deployments_service
from ..schemas import (
    Branch,
    DeploymentConfigurationResponse,
    DeploymentRunResponse,
    Job,
    Repository,
    TriggerWorkflowRequest,
    UpsertDeploymentConfigurationRequest,
    Workflow,
)
from ..services.deployments_service import DeploymentsService

router = APIRouter(
    prefix="/api/agents/{agent_id}/deployments",
    tags=["deployments"],
    dependencies=[Depends(require_auth)],
)


# =============================================================================
# Configuration
# =============================================================================


@router.get("/configuration", response_model=DeploymentConfigurationResponse | None)
def get_configuration(agent_id: uuid.UUID, service: DeploymentsService = Depends(get_deployments_service)):
    return service.get_configuration(agent_id)


@router.post("/configuration", response_model=DeploymentConfigurationResponse)
def upsert_configuration(
    agent_id: uuid.UUID,
    body: UpsertDeploymentConfigurationRequest,
    service: DeploymentsService = Depends(get_deployments_service),
):
    return service.upsert_configuration(agent_id, body)


@router.delete("/configuration", status_code=status.HTTP_204_NO_CONTENT)
def delete_configuration(agent_id: uuid.UUID, service: DeploymentsService = Depends(get_deployments_service)) -> None:
    service.delete_configuration(agent_id)


# =============================================================================
# Repository browsing
# =============================================================================


@router.get("/repositories", response_model=list[Repository])
async def list_repositories(agent_id: uuid.UUID, service: DeploymentsService = Depends(get_deployments_service)):
    return await service.list_repositories(agent_id)


@router.get("/repositories/{repository_id:path}/branches", response_model=list[Branch])
async def list_branches(
    agent_id: uuid.UUID, repository_id: str, service: DeploymentsService = Depends(get_deployments_service)
):
    return await service.list_branches(agent_id, repository_id)


@router.get("/repositories/{repository_id:path}/workflows", response_model=list[Workflow])
async def list_workflows(
    agent_id: uuid.UUID,
    repository_id: str,
    branch: str | None = None,
    service: DeploymentsService = Depends(get_deployments_service),
):
    return await service.list_workflows(agent_id, repository_id, branch)


# =============================================================================
# Runs
# =============================================================================


@router.post("/workflows/trigger", response_model=DeploymentRunResponse, status_code=status.HTTP_201_CREATED)
async def trigger_workflow(
    agent_id: uuid.UUID,
    body: TriggerWorkflowRequest,
    service: DeploymentsService = Depends(get_deployments_service),
):
    return await service.trigger_workflow(agent_id, body)


@router.get("/runs", response_model=list[DeploymentRunResponse])
def list_runs(
    agent_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: DeploymentsService = Depends(get_deployments_service),
):
    return service.list_runs(agent_id, limit=limit, offset=offset)


@router.get("/runs/{run_id}", response_model=DeploymentRunResponse)
async def get_run(agent_id: uuid.UUID, run_id: str, service: DeploymentsService = Depends(get_deployments_service)):
    return await service.get_run_status(agent_id, run_id)


@router.get("/runs/{run_id}/logs")
async def get_run_logs(
    agent_id: uuid.UUID, run_id: str, service: DeploymentsService = Depends(get_deployments_service)
) -> dict:
    return {"logs": await service.get_run_logs(agent_id, run_id)}


@router.get("/runs/{run_id}/jobs", response_model=list[Job])
async def list_run_jobs(
    agent_id: uuid.UUID, run_id: str, service: DeploymentsService = Depends(get_deployments_service)
):
    return await service.list_run_jobs(agent_id, run_id)


@router.get("/runs/{run_id}/jobs/{job_id}/logs")
async def get_job_logs(
    agent_id: uuid.UUID, run_id: str, job_id: str, service: DeploymentsService = Depends(get_deployments_service)
) -> dict:
    return {"logs": await service.get_job_logs(agent_id, run_id, job_id)}


@router.post("/runs/{run_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_run(
    agent_id: uuid.UUID, run_id: str, service: DeploymentsService = Depends(get_deployments_service)
) -> None:
    await service.cancel_run(agent_id, run_id)
