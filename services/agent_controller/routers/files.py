"""
Files Router - workspace files of an agent on a client.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from shared.auth import require_auth

from ..dependencies import get_files_proxy
from ..proxy import ClientAgentFileSystemProxyService

router = APIRouter(
    prefix="/api/clients/{client_id}/agents/{agent_id}/files",
    tags=["files"],
    dependencies=[Depends(require_auth)],
)


@router.get("")
async def list_directory(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str = Query("."),
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
):
    return await proxy.list_directory(client_id, agent_id, path)


@router.get("/{path:path}")
async def read_file(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str,
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
):
    return await proxy.read_file(client_id, agent_id, path)


@router.put("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def write_file(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
) -> None:
    await proxy.write_file(client_id, agent_id, path, body)


@router.post("/{path:path}", status_code=status.HTTP_201_CREATED)
async def create_entry(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
) -> None:
    await proxy.create_file_or_directory(client_id, agent_id, path, body)


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str,
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
) -> None:
    await proxy.delete_file_or_directory(client_id, agent_id, path)


@router.patch("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def move_entry(
    client_id: uuid.UUID,
    agent_id: uuid.UUID,
    path: str,
    body: dict[str, Any] = Body(...),
    proxy: ClientAgentFileSystemProxyService = Depends(get_files_proxy),
) -> None:
    await proxy.move_file_or_directory(client_id, agent_id, path, body)
