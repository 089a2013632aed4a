"""
VCS Router - git operations on an agent's workspace.

Mutating routes return 204; failures surface as 400 with the git output.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_vcs_service
from ..schemas import (
    CommitRequest,
    CreateBranchRequest,
    GitBranch,
    GitDiff,
    GitStatus,
    PushOptions,
    RebaseRequest,
    ResolveConflictRequest,
    StageFilesRequest,
)
from ..services.vcs_service import AgentsVcsService

router = APIRouter(prefix="/api/agents/{agent_id}/vcs", tags=["vcs"], dependencies=[Depends(require_auth)])

NO_CONTENT = status.HTTP_204_NO_CONTENT


@router.get("/status", response_model=GitStatus)
def get_status(agent_id: uuid.UUID, service: AgentsVcsService = Depends(get_vcs_service)):
    return service.get_status(agent_id)


@router.get("/branches", response_model=list[GitBranch], response_model_exclude_none=True)
def get_branches(agent_id: uuid.UUID, service: AgentsVcsService = Depends(get_vcs_service)):
    return service.get_branches(agent_id)


@router.get("/diff", response_model=GitDiff, response_model_exclude_none=True)
def get_diff(agent_id: uuid.UUID, path: str = Query(...), service: AgentsVcsService = Depends(get_vcs_service)):
    return service.get_file_diff(agent_id, path)


@router.post("/stage", status_code=NO_CONTENT)
def stage(agent_id: uuid.UUID, body: StageFilesRequest, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.stage_files(agent_id, body.files)


@router.post("/unstage", status_code=NO_CONTENT)
def unstage(agent_id: uuid.UUID, body: StageFilesRequest, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.unstage_files(agent_id, body.files)


@router.post("/commit", status_code=NO_CONTENT)
def commit(agent_id: uuid.UUID, body: CommitRequest, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.commit(agent_id, body.message)


@router.post("/push", status_code=NO_CONTENT)
def push(
    agent_id: uuid.UUID,
    body: PushOptions | None = None,
    service: AgentsVcsService = Depends(get_vcs_service),
) -> None:
    service.push(agent_id, force=bool(body and body.force))


@router.post("/pull", status_code=NO_CONTENT)
def pull(agent_id: uuid.UUID, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.pull(agent_id)


@router.post("/fetch", status_code=NO_CONTENT)
def fetch(agent_id: uuid.UUID, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.fetch(agent_id)


@router.post("/rebase", status_code=NO_CONTENT)
def rebase(agent_id: uuid.UUID, body: RebaseRequest, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.rebase(agent_id, body.branch)


@router.post("/branches/{branch:path}/switch", status_code=NO_CONTENT)
def switch_branch(agent_id: uuid.UUID, branch: str, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.switch_branch(agent_id, branch)


@router.post("/branches", status_code=NO_CONTENT)
def create_branch(
    agent_id: uuid.UUID, body: CreateBranchRequest, service: AgentsVcsService = Depends(get_vcs_service)
) -> None:
    service.create_branch(agent_id, body)


@router.delete("/branches/{branch:path}", status_code=NO_CONTENT)
def delete_branch(agent_id: uuid.UUID, branch: str, service: AgentsVcsService = Depends(get_vcs_service)) -> None:
    service.delete_branch(agent_id, branch)


@router.post("/conflicts/resolve", status_code=NO_CONTENT)
def resolve_conflict(
    agent_id: uuid.UUID, body: ResolveConflictRequest, service: AgentsVcsService = Depends(get_vcs_service)
) -> None:
    service.resolve_conflict(agent_id, body)
