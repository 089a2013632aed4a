"""
Agent CRUD on a remote agent-manager.

Creating an agent returns its password exactly once; the controller keeps it
(encrypted) so the ``/clients`` gateway can log into the agent later.
"""

import logging
import uuid
from typing import Any

from ..services.credentials_service import ClientAgentCredentialsService
from .base import ClientProxy, segment

logger = logging.getLogger(__name__)


class ClientAgentProxyService(ClientProxy):
    @property
    def credentials(self) -> ClientAgentCredentialsService:
        return ClientAgentCredentialsService(self.clients_service.session)

    async def get_client_agents(self, client_id: uuid.UUID, limit: int = 10, offset: int = 0) -> Any:
        return await self._request(client_id, "GET", params={"limit": limit, "offset": offset})

    async def get_client_agent(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._request(client_id, "GET", f"/{segment(agent_id)}")

    async def create_client_agent(self, client_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        created = await self._request(client_id, "POST", json=dto)
        if isinstance(created, dict) and created.get("id") and created.get("password"):
            try:
                agent_id = uuid.UUID(str(created["id"]))
            except ValueError:
                logger.warning(f"Remote agent id {created['id']!r} is not a UUID; credentials not stored")
            else:
                self.credentials.save(client_id, agent_id, created["password"])
                logger.info(f"Stored credentials for agent {agent_id} on client {client_id}")
        return created

    async def update_client_agent(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        return await self._request(client_id, "POST", f"/{segment(agent_id)}", json=dto)

    async def delete_client_agent(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> None:
        await self._request(client_id, "DELETE", f"/{segment(agent_id)}")
        self.credentials.delete(client_id, agent_id)

    async def get_client_config(self, client_id: uuid.UUID) -> dict | None:
        return await self.clients_service.get_client_config(client_id)
