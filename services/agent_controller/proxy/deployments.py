"""
CI/CD deployment operations on a remote agent.

Repository ids (``owner/repo`` on GitHub, numeric or path-like on GitLab)
are percent-encoded into a single path segment.
"""

import uuid
from typing import Any

from .base import ClientProxy, segment


class ClientAgentDeploymentsProxyService(ClientProxy):
    async def _deployments(
        self,
        client_id: uuid.UUID,
        agent_id: uuid.UUID,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        suffix = f"/{segment(agent_id)}/deployments/{path}"
        return await self._request(client_id, method, suffix, json=json, params=params)

    # =========================================================================
    # Configuration
    # =========================================================================

    async def get_configuration(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._deployments(client_id, agent_id, "GET", "configuration")

    async def upsert_configuration(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        return await self._deployments(client_id, agent_id, "POST", "configuration", json=dto)

    async def delete_configuration(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> None:
        await self._deployments(client_id, agent_id, "DELETE", "configuration")

    # =========================================================================
    # Repositories and workflows
    # =========================================================================

    async def list_repositories(self, client_id: uuid.UUID, agent_id: uuid.UUID) -> Any:
        return await self._deployments(client_id, agent_id, "GET", "repositories")

    async def list_branches(self, client_id: uuid.UUID, agent_id: uuid.UUID, repository_id: str) -> Any:
        return await self._deployments(client_id, agent_id, "GET", f"repositories/{segment(repository_id)}/branches")

    async def list_workflows(
        self, client_id: uuid.UUID, agent_id: uuid.UUID, repository_id: str, branch: str | None = None
    ) -> Any:
        params = {"branch": branch} if branch else None
        return await self._deployments(
            client_id, agent_id, "GET", f"repositories/{segment(repository_id)}/workflows", params=params
        )

    async def trigger_workflow(self, client_id: uuid.UUID, agent_id: uuid.UUID, dto: dict[str, Any]) -> Any:
        return await self._deployments(client_id, agent_id, "POST", "workflows/trigger", json=dto)

    # =========================================================================
    # Runs
    # =========================================================================

    async def list_runs(self, client_id: uuid.UUID, agent_id: uuid.UUID, limit: int = 50, offset: int = 0) -> Any:
        return await self._deployments(client_id, agent_id, "GET", "runs", params={"limit": limit, "offset": offset})

    async def get_run(self, client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str) -> Any:
        return await self._deployments(client_id, agent_id, "GET", f"runs/{segment(run_id)}")

    async def get_run_logs(self, client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str) -> Any:
        return await self._deployments(client_id, agent_id, "GET", f"runs/{segment(run_id)}/logs")

    async def list_run_jobs(self, client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str) -> Any:
        return await self._deployments(client_id, agent_id, "GET", f"runs/{segment(run_id)}/jobs")

    async def get_job_logs(self, client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str, job_id: str) -> Any:
        return await self._deployments(
            client_id, agent_id, "GET", f"runs/{segment(run_id)}/jobs/{segment(job_id)}/logs"
        )

    async def cancel_run(self, client_id: uuid.UUID, agent_id: uuid.UUID, run_id: str) -> None:
        await self._deployments(client_id, agent_id, "POST", f"runs/{segment(run_id)}/cancel")
