"""GitHub Actions pipeline provider."""

import asyncio
import logging
from typing import Any

import httpx

from shared.errors import BadRequestError

from ...schemas import Branch, Job, PipelineRun, Repository, Workflow
from . import base
from .base import PipelineCredentials, PipelineProvider, describe_http_error, parse_timestamp

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "queued": "queued",
    "in_progress": "in_progress",
    "completed": "completed",
    "cancelled": "cancelled",
}

CONCLUSION_MAP = {
    "success": "success",
    "failure": "failure",
    "cancelled": "cancelled",
    "skipped": "skipped",
    "neutral": "skipped",
    "timed_out": "failure",
}

WORKFLOW_DISPATCH_HINT = (
    "Workflow cannot be triggered. This usually means the workflow does not support manual triggers "
    "(workflow_dispatch). Please ensure the workflow file includes 'workflow_dispatch' in its 'on:' triggers."
)


def map_status(status: str) -> str:
    return STATUS_MAP.get(status, status)


def map_conclusion(conclusion: str | None) -> str | None:
    if not conclusion:
        return None
    return CONCLUSION_MAP.get(conclusion, conclusion)


def split_repository_id(repository_id: str) -> tuple[str, str]:
    owner, _, repo = repository_id.partition("/")
    if not owner or not repo:
        raise BadRequestError(f"Invalid repository ID format: {repository_id}. Expected format: owner/repo")
    return owner, repo


class GitHubProvider(PipelineProvider):
    TYPE = "github"
    API_BASE_URL = "https://api.github.com"

    def get_type(self) -> str:
        return self.TYPE

    def get_display_name(self) -> str:
        return "GitHub Actions"

    def _client(self, credentials: PipelineCredentials) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=credentials.base_url or self.API_BASE_URL,
            headers={
                "Authorization": f"Bearer {credentials.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=self.timeout,
        )

    def _map_run(self, run: dict[str, Any], workflow_id: str, workflow_name: str) -> PipelineRun:
        return PipelineRun(
            id=str(run["id"]),
            name=run.get("name") or workflow_name,
            status=map_status(run["status"]),
            conclusion=map_conclusion(run.get("conclusion")),
            ref=run.get("head_branch") or "",
            sha=run.get("head_sha") or "",
            created_at=parse_timestamp(run.get("created_at")),
            updated_at=parse_timestamp(run.get("updated_at")),
            started_at=parse_timestamp(run.get("run_started_at")),
            completed_at=parse_timestamp(run.get("completed_at")),
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            html_url=run.get("html_url"),
        )

    async def list_repositories(self, credentials: PipelineCredentials) -> list[Repository]:
        try:
            repos = await self._get_json(
                credentials, "/user/repos", params={"per_page": 100, "sort": "updated", "type": "all"}
            )
        except httpx.HTTPError as e:
            raise self._fail("list repositories", e)
        return [
            Repository(
                id=repo["full_name"],
                name=repo["name"],
                full_name=repo["full_name"],
                default_branch=repo.get("default_branch") or "main",
                url=repo["html_url"],
                private=bool(repo.get("private")),
            )
            for repo in repos
        ]

    async def list_branches(self, credentials: PipelineCredentials, repository_id: str) -> list[Branch]:
        owner, repo = split_repository_id(repository_id)
        try:
            repository = await self._get_json(credentials, f"/repos/{owner}/{repo}")
            branches = await self._get_json(credentials, f"/repos/{owner}/{repo}/branches", params={"per_page": 100})
        except httpx.HTTPError as e:
            raise self._fail("list branches", e)
        default_branch = repository.get("default_branch")
        return [
            Branch(name=b["name"], sha=b["commit"]["sha"], default=b["name"] == default_branch) for b in branches
        ]

    async def list_workflows(
        self, credentials: PipelineCredentials, repository_id: str, branch: str | None = None
    ) -> list[Workflow]:
        owner, repo = split_repository_id(repository_id)
        try:
            data = await self._get_json(credentials, f"/repos/{owner}/{repo}/actions/workflows")
        except httpx.HTTPError as e:
            raise self._fail("list workflows", e)
        return [
            Workflow(
                id=str(w["id"]),
                name=w["name"],
                path=w["path"],
                state=w["state"],
                can_trigger=w["state"] == "active",
            )
            for w in data.get("workflows", [])
        ]

    async def trigger_workflow(
        self,
        credentials: PipelineCredentials,
        repository_id: str,
        workflow_id: str,
        ref: str,
        inputs: dict[str, Any] | None = None,
    ) -> PipelineRun:
        owner, repo = split_repository_id(repository_id)
        async with self._client(credentials) as client:
            try:
                branch_check = await client.get(f"/repos/{owner}/{repo}/git/ref/heads/{ref}")
            except httpx.HTTPError as e:
                raise self._fail("trigger workflow", e)
            if branch_check.status_code == 404:
                raise BadRequestError(f"Branch '{ref}' does not exist in the repository")

            try:
                dispatch = await client.post(
                    f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/dispatches",
                    json={"ref": ref, "inputs": inputs or {}},
                )
                dispatch.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Failed to trigger workflow {workflow_id}: {describe_http_error(e)}")
                if e.response.status_code == 422:
                    raise BadRequestError(WORKFLOW_DISPATCH_HINT)
                raise self._fail("trigger workflow", e)
            except httpx.HTTPError as e:
                raise self._fail("trigger workflow", e)

            await asyncio.sleep(base.DISPATCH_SETTLE_SECONDS)

            try:
                workflow = await client.get(f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}")
                workflow_name = "Unknown Workflow"
                if workflow.is_success:
                    workflow_name = workflow.json().get("name") or workflow_name
                runs = await client.get(
                    f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs", params={"per_page": 1}
                )
                runs.raise_for_status()
            except httpx.HTTPError as e:
                raise self._fail("trigger workflow", e)

        workflow_runs = runs.json().get("workflow_runs") or []
        if not workflow_runs:
            raise BadRequestError("Failed to retrieve triggered workflow run")
        return self._map_run(workflow_runs[0], workflow_id, workflow_name)

    async def get_run_status(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> PipelineRun:
        owner, repo = split_repository_id(repository_id)
        try:
            run = await self._get_json(credentials, f"/repos/{owner}/{repo}/actions/runs/{run_id}")
            workflow = await self._get_json(credentials, f"/repos/{owner}/{repo}/actions/workflows/{run['workflow_id']}")
        except httpx.HTTPError as e:
            raise self._fail("get run status", e)
        return self._map_run(run, str(run["workflow_id"]), workflow.get("name", ""))

    async def list_run_jobs(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> list[Job]:
        owner, repo = split_repository_id(repository_id)
        try:
            data = await self._get_json(credentials, f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs")
        except httpx.HTTPError as e:
            raise self._fail("list jobs", e)
        return [
            Job(
                id=str(job["id"]),
                name=job["name"],
                status=map_status(job["status"]),
                conclusion=map_conclusion(job.get("conclusion")),
                started_at=parse_timestamp(job.get("started_at")),
                completed_at=parse_timestamp(job.get("completed_at")),
            )
            for job in data.get("jobs", [])
        ]

    async def get_job_logs(
        self, credentials: PipelineCredentials, repository_id: str, run_id: str, job_id: str
    ) -> str:
        owner, repo = split_repository_id(repository_id)
        try:
            async with self._client(credentials) as client:
                # Logs are served from a signed redirect location
                response = await client.get(f"/repos/{owner}/{repo}/actions/jobs/{job_id}/logs", follow_redirects=True)
                if response.status_code == 404:
                    return ""
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise self._fail("get job logs", e)

    async def cancel_run(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> None:
        owner, repo = split_repository_id(repository_id)
        try:
            async with self._client(credentials) as client:
                response = await client.post(f"/repos/{owner}/{repo}/actions/runs/{run_id}/cancel")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._fail("cancel run", e)
