"""
VCS Router - git operations on an agent's workspace, proxied to its client.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_vcs_proxy
from ..proxy import ClientAgentVcsProxyService

router = APIRouter(
    prefix="/api/clients/{client_id}/agents/{agent_id}/vcs",
    tags=["vcs"],
    dependencies=[Depends(require_auth)],
)

NO_CONTENT = status.HTTP_204_NO_CONTENT


@router.get("/status")
async def get_status(
    client_id: uuid.UUID, agent_id: uuid.UUID, proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy)
):
    return await proxy.get_status(client_id, agent_id)


@router.get("/branches")
async def get_branches(
    client_id: uuid.UUID, agent_id: uuid.UUID, proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy)
):
    return await proxy.get_branches(client_id, agent_id)


@router.get("/diff")
async def get_diff(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str = Query(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
):
    return await proxy.get_file_diff(client_id, agent_id, path)


@router.post("/stage", status_code=NO_CONTENT)
async def stage(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.stage_files(client_id, agent_id, body)


@router.post("/unstage", status_code=NO_CONTENT)
async def unstage(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.unstage_files(client_id, agent_id, body)


@router.post("/commit", status_code=NO_CONTENT)
async def commit(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.commit(client_id, agent_id, body)


@router.post("/push", status_code=NO_CONTENT)
async def push(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] | None = Body(None),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.push(client_id, agent_id, force=bool(body and body.get("force")))


@router.post("/pull", status_code=NO_CONTENT)
async def pull(
    client_id: uuid.UUID, agent_id: uuid.UUID, proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy)
) -> None:
    await proxy.pull(client_id, agent_id)


@router.post("/fetch", status_code=NO_CONTENT)
async def fetch(
    client_id: uuid.UUID, agent_id: uuid.UUID, proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy)
) -> None:
    await proxy.fetch(client_id, agent_id)


@router.post("/rebase", status_code=NO_CONTENT)
async def rebase(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.rebase(client_id, agent_id, str(body.get("branch") or ""))


@router.post("/branches/{branch:path}/switch", status_code=NO_CONTENT)
async def switch_branch(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    branch: str,
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.switch_branch(client_id, agent_id, branch)


@router.post("/branches", status_code=NO_CONTENT)
async def create_branch(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.create_branch(client_id, agent_id, body)


@router.delete("/branches/{branch:path}", status_code=NO_CONTENT)
async def delete_branch(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    branch: str,
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.delete_branch(client_id, agent_id, branch)


@router.post("/conflicts/resolve", status_code=NO_CONTENT)
async def resolve_conflict(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentVcsProxyService = Depends(get_vcs_proxy),
) -> None:
    await proxy.resolve_conflict(client_id, agent_id, body)
