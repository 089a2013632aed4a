"""
Deployments Router - CI/CD pipelines of an agent on a client.

Requires role ``client_management`` on top of authentication. Repository ids
arrive percent-encoded and may decode to paths containing ``/``.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from shared.auth import require_roles

from ..dependencies import get_deployments_proxy
from ..proxy import ClientAgentDeploymentsProxyService

CLIENT_MANAGEMENT_ROLE = "client_management"

router = APIRouter(
    prefix="/api/clients/{client_id}/agents/{agent_id}/deployments",
    tags=["deployments"],
    dependencies=[Depends(require_roles(CLIENT_MANAGEMENT_ROLE))],
)

Proxy = ClientAgentDeploymentsProxyService


# =============================================================================
# Configuration
# =============================================================================


@router.get("/configuration")
async def get_configuration(client_id: uuid.UUID, agent_id: uuid.UUID, proxy: Proxy = Depends(get_deployments_proxy)):
    return await proxy.get_configuration(client_id, agent_id)


@router.post("/configuration")
async def upsert_configuration(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.upsert_configuration(client_id, agent_id, body)


@router.delete("/configuration", status_code=status.HTTP_204_NO_CONTENT)
async def delete_configuration(
    client_id: uuid.UUID, agent_id: uuid.UUID, proxy: Proxy = Depends(get_deployments_proxy)
) -> None:
    await proxy.delete_configuration(client_id, agent_id)


# =============================================================================
# Repositories & workflows
# =============================================================================


@router.get("/repositories")
async def list_repositories(client_id: uuid.UUID, agent_id: uuid.UUID, proxy: Proxy = Depends(get_deployments_proxy)):
    return await proxy.list_repositories(client_id, agent_id)


@router.get("/repositories/{repository_id:path}/branches")
async def list_branches(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    repository_id: str,
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.list_branches(client_id, agent_id, repository_id)


@router.get("/repositories/{repository_id:path}/workflows")
async def list_workflows(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    repository_id: str,
    branch: str | None = Query(None),
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.list_workflows(client_id, agent_id, repository_id, branch)


@router.post("/workflows/trigger", status_code=status.HTTP_201_CREATED)
async def trigger_workflow(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.trigger_workflow(client_id, agent_id, body)


# =============================================================================
# Runs
# =============================================================================


@router.get("/runs")
async def list_runs(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.list_runs(client_id, agent_id, limit=limit, offset=offset)


@router.get("/runs/{run_id}")
async def get_run(
    client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str, proxy: Proxy = Depends(get_deployments_proxy)
):
    return await proxy.get_run(client_id, agent_id, run_id)


@router.get("/runs/{run_id}/logs")
async def get_run_logs(
    client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str, proxy: Proxy = Depends(get_deployments_proxy)
):
    return await proxy.get_run_logs(client_id, agent_id, run_id)


@router.get("/runs/{run_id}/jobs")
async def list_run_jobs(
    client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str, proxy: Proxy = Depends(get_deployments_proxy)
):
    return await proxy.list_run_jobs(client_id, agent_id, run_id)


@router.get("/runs/{run_id}/jobs/{job_id}/logs")
async def get_job_logs(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    run_id: str,
    job_id: str,
    proxy: Proxy = Depends(get_deployments_proxy),
):
    return await proxy.get_job_logs(client_id, agent_id, run_id, job_id)


@router.post("/runs/{run_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_run(
    client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str, proxy: Proxy = Depends(get_deployments_proxy)
) -> None:
    await proxy.cancel_run(client_id, agent_id, run_id)
