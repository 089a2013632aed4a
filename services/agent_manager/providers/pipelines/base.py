"""CI/CD pipeline provider interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from shared.errors import BadRequestError

from ...schemas import Branch, Job, PipelineRun, Repository, Workflow

logger = logging.getLogger(__name__)

# Seconds to wait after a dispatch before reading the created run back
DISPATCH_SETTLE_SECONDS = 1.0


@dataclass
class PipelineCredentials:
    token: str
    base_url: str | None = None


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def describe_http_error(error: Exception) -> str:
    """Prefer the upstream ``message`` (or ``errors``) over httpx's own text."""
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            if body.get("message"):
                return str(body["message"])
            errors = body.get("errors")
            if isinstance(errors, list) and errors:
                return "; ".join(
                    str(e.get("message", "Unknown error")) if isinstance(e, dict) else str(e) for e in errors
                )
        return f"Request failed with status code {error.response.status_code}"
    return str(error) or error.__class__.__name__


class PipelineProvider(ABC):
    """A CI system reachable over HTTP with a per-agent token."""

    timeout: float = 30.0

    @abstractmethod
    def get_type(self) -> str: ...

    @abstractmethod
    def get_display_name(self) -> str: ...

    @abstractmethod
    def _client(self, credentials: PipelineCredentials) -> httpx.AsyncClient: ...

    async def _get_json(self, credentials: PipelineCredentials, path: str, **kwargs) -> Any:
        async with self._client(credentials) as client:
            response = await client.get(path, **kwargs)
            response.raise_for_status()
            return response.json()

    def _fail(self, action: str, error: Exception) -> BadRequestError:
        if isinstance(error, BadRequestError):
            return error
        detail = describe_http_error(error)
        logger.error(f"Failed to {action}: {detail}")
        return BadRequestError(f"Failed to {action}: {detail}")

    @abstractmethod
    async def list_repositories(self, credentials: PipelineCredentials) -> list[Repository]: ...

    @abstractmethod
    async def list_branches(self, credentials: PipelineCredentials, repository_id: str) -> list[Branch]: ...

    @abstractmethod
    async def list_workflows(
        self, credentials: PipelineCredentials, repository_id: str, branch: str | None = None
    ) -> list[Workflow]: ...

    @abstractmethod
    async def trigger_workflow(
        self,
        credentials: PipelineCredentials,
        repository_id: str,
        workflow_id: str,
        ref: str,
        inputs: dict[str, Any] | None = None,
    ) -> PipelineRun: ...

    @abstractmethod
    async def get_run_status(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> PipelineRun: ...

    @abstractmethod
    async def list_run_jobs(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> list[Job]: ...

    @abstractmethod
    async def get_job_logs(
        self, credentials: PipelineCredentials, repository_id: str, run_id: str, job_id: str
    ) -> str: ...

    @abstractmethod
    async def cancel_run(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> None: ...

    async def get_run_logs(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> str:
        """Logs of every job in the run, separated by ``---`` rules."""
        try:
            jobs = await self.list_run_jobs(credentials, repository_id, run_id)
            logs = [await self.get_job_logs(credentials, repository_id, run_id, job.id) for job in jobs]
        except (httpx.HTTPError, BadRequestError) as e:
            raise self._fail("get run logs", e)
        return "\n\n---\n\n".join(logs)
