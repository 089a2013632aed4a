"""Git operations on a remote agent's workspace."""

import uuid
from typing import Any
from urllib.parse import quote

from .base import ClientProxy, segment


class ClientAgentVcsProxyService(ClientProxy):
    async def _vcs(
        self,
        client_id: uuid.UUID,
        agent_id: uuid.UUID,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self._request(client_id, method, f"/{segment(agent_id)}/vcs/{path}", json=json, params=params)

    async def get_status(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._vcs(client_id, agent_id, "GET", "status")

    async def get_branches(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._vcs(client_id, agent_id, "GET", "branches")

    async def get_file_diff(self, client_id: uuid.UUID, agent_id: uuid.UUID, path: str) -> Any:
        return await self._vcs(client_id, agent_id, "GET", "diff", params={"path": path})

    async def stage_files(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> None:
        await self._vcs(client_id, agent_id, "POST", "stage", json=dto)

    async def unstage_files(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> None:
        await self._vcs(client_id, agent_id, "POST", "unstage", json=dto)

    async def commit(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> None:
        await self._vcs(client_id, agent_id, "POST", "commit", json=dto)

    async def push(self, client_id: uuid.UUID, agent_id: uuid.UUID, force: bool = False) -> None:
        await self._vcs(client_id, agent_id, "POST", "push", json={"force": force})

    async def pull(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> None:
        await self._vcs(client_id, agent_id, "POST", "pull")

    async def fetch(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> None:
        await self._vcs(client_id, agent_id, "POST", "fetch")

    async def rebase(self, client_id: uuid.UUID, agent_id: uuid.UUID, branch: str) -> None:
        await self._vcs(client_id, agent_id, "POST", "rebase", json={"branch": branch})

    async def switch_branch(self, client_id: uuid.UUID, agent_id: uuid.UUID, branch: str) -> None:
        await self._vcs(client_id, agent_id, "POST", f"branches/{quote(branch, safe='/')}/switch")

    async def create_branch(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> None:
        await self._vcs(client_id, agent_id, "POST", "branches", json=dto)

    async def delete_branch(self, client_id: uuid.UUID, agent_id: uuid.UUID, branch: str) -> None:
        await self._vcs(client_id, agent_id, "DELETE", f"branches/{quote(branch, safe='/')}")

    async def resolve_conflict(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> None:
        await self._vcs(client_id, agent_id, "POST", "conflicts/resolve", json=dto)
