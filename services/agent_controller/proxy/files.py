"""Workspace file operations on a remote agent."""

import uuid
from typing import Any
from urllib.parse import quote

from .base import ClientProxy, segment


def _file_path(path: str) -> str:
    return quote(path.lstrip("/"), safe="/")


class ClientAgentFileSystemProxyService(ClientProxy):
    def _suffix(self, agent_id: uuid.UUID, path: str | None = None) -> str:
        suffix = f"/{segment(agent_id)}/files"
        return f"{suffix}/{_file_path(path)}" if path is not None else suffix

    async def list_directory(self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str = ".") -> Any:
        return await self._request(client_id, "GET", self._suffix(agent_id), params={"path": path})

    async def read_file(self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str) -> Any:
        return await self._request(client_id, "GET", self._suffix(agent_id, path))

    async def write_file(self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str, dto: dict[str, Any]) -> None:
        await self._request(client_id, "PUT", self._suffix(agent_id, path), json=dto)

    async def create_file_or_directory(
        self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str, dto: dict[str, Any]
    ) -> None:
        await self._request(client_id, "POST", self._suffix(agent_id, path), json=dto)

    async def delete_file_or_directory(self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str) -> None:
        await self._request(client_id, "DELETE", self._suffix(agent_id, path))

    async def move_file_or_directory(
        self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str, dto: dict[str, Any]
    ) -> None:
        await self._request(client_id, "PATCH", self._suffix(agent_id, path), json=dto)
