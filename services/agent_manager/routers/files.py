"""
Files Router - browse and edit the workspace inside an agent container.

Paths are relative to the workspace root; ``{path:path}`` keeps slashes.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_files_service
from ..schemas import CreateFileRequest, FileContent, FileNode, MoveFileRequest, WriteFileRequest
from ..services.files_service import AgentFileSystemService

router = APIRouter(prefix="/api/agents/{agent_id}/files", tags=["files"], dependencies=[Depends(require_auth)])


@router.get("", response_model=list[FileNode], response_model_exclude_none=True)
def list_directory(
    agent_id: uuid.UUID,
    path: str = Query("."),
    service: AgentFileSystemService = Depends(get_files_service),
):
    return service.list_directory(agent_id, path)


@router.get("/{path:path}", response_model=FileContent)
def read_file(agent_id: uuid.UUID, path: str, service: AgentFileSystemService = Depends(get_files_service)):
    return service.read_file(agent_id, path)


@router.put("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
def write_file(
    agent_id: uuid.UUID,
    path: str,
    body: WriteFileRequest,
    service: AgentFileSystemService = Depends(get_files_service),
) -> None:
    service.write_file(agent_id, path, body.content, body.encoding)


@router.post("/{path:path}", status_code=status.HTTP_201_CREATED)
def create_entry(
    agent_id: uuid.UUID,
    path: str,
    body: CreateFileRequest,
    service: AgentFileSystemService = Depends(get_files_service),
) -> None:
    service.create_file_or_directory(agent_id, path, body.type, body.content)


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(agent_id: uuid.UUID, path: str, service: AgentFileSystemService = Depends(get_files_service)) -> None:
    service.delete_file_or_directory(agent_id, path)


@router.patch("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
def move_entry(
    agent_id: uuid.UUID,
    path: str,
    body: MoveFileRequest,
    service: AgentFileSystemService = Depends(get_files_service),
) -> None:
    service.move_file_or_directory(agent_id, path, body.destination)
