"""Environment variables of a remote agent."""

import uuid
from typing import Any

from .base import ClientProxy, segment


class ClientAgentEnvironmentVariablesProxyService(ClientProxy):
    def _suffix(self, agent_id: uuid.UUID, env_var_id: uuid.UUID | None = None) -> str:
        suffix = f"/{segment(agent_id)}/environment"
        return f"{suffix}/{segment(env_var_id)}" if env_var_id is not None else suffix

    async def list(self, client_id: uuid.UUID, agent_id: uuid.UUID, limit: int = 50, offset: int = 0) -> Any:
        return await self._request(client_id, "GET", self._suffix(agent_id), params={"limit": limit, "offset": offset})

    async def count(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._request(client_id, "GET", f"{self._suffix(agent_id)}/count")

    async def create(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        return await self._request(client_id, "POST", self._suffix(agent_id), json=dto)

    async def update(self, client_id: uuid.UUID, agent_id: uuid.UUID, env_var_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        return await self._request(client_id, "PUT", self._suffix(agent_id, env_var_id), json=dto)

    async def delete(self, client_id: uuid.UUID, agent_id: uuid.UUID, env_var_id: uuid.UUID) -> None:
        await self._request(client_id, "DELETE", self._suffix(agent_id, env_var_id))

    async def delete_all(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._request(client_id, "DELETE", self._suffix(agent_id))
