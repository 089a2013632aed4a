"""GitLab CI/CD pipeline provider."""

import asyncio
from typing import Any
from urllib.parse import quote

import httpx

from ...schemas import Branch, Job, PipelineRun, Repository, Workflow
from . import base
from .base import PipelineCredentials, PipelineProvider, parse_timestamp

STATUS_MAP = {
    "pending": "queued",
    "running": "in_progress",
    "success": "completed",
    "failed": "failure",
    "canceled": "cancelled",
    "skipped": "skipped",
    "manual": "queued",
    "scheduled": "queued",
}

CONCLUSION_MAP = {
    "success": "success",
    "failed": "failure",
    "canceled": "cancelled",
    "cancelled": "cancelled",
    "skipped": "skipped",
}


def map_status(status: str) -> str:
    return STATUS_MAP.get(status.lower(), status)


def map_conclusion(status: str) -> str | None:
    """GitLab has no separate conclusion; derive it from terminal states."""
    return CONCLUSION_MAP.get(status.lower())


def encode_project(repository_id: str) -> str:
    return quote(repository_id, safe="")


class GitLabProvider(PipelineProvider):
    TYPE = "gitlab"
    API_BASE_URL = "https://gitlab.com/api/v4"

    def get_type(self) -> str:
        return self.TYPE

    def get_display_name(self) -> str:
        return "GitLab CI/CD"

    def api_base_url(self, credentials: PipelineCredentials) -> str:
        if not credentials.base_url:
            return self.API_BASE_URL
        url = credentials.base_url.rstrip("/")
        if url.endswith("/api/v4"):
            return url
        if url.endswith("/api"):
            return f"{url}/v4"
        return f"{url}/api/v4"

    def _client(self, credentials: PipelineCredentials) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base_url(credentials),
            headers={"PRIVATE-TOKEN": credentials.token, "Content-Type": "application/json"},
            timeout=self.timeout,
        )

    def _map_pipeline(self, pipeline: dict[str, Any], workflow_id: str) -> PipelineRun:
        return PipelineRun(
            id=str(pipeline["id"]),
            name=f"Pipeline #{pipeline['id']}",
            status=map_status(pipeline["status"]),
            conclusion=map_conclusion(pipeline["status"]),
            ref=pipeline.get("ref") or "",
            sha=pipeline.get("sha") or "",
            created_at=parse_timestamp(pipeline.get("created_at")),
            updated_at=parse_timestamp(pipeline.get("updated_at")),
            started_at=parse_timestamp(pipeline.get("started_at")),
            completed_at=parse_timestamp(pipeline.get("finished_at")),
            workflow_id=workflow_id,
            workflow_name="GitLab CI/CD Pipeline",
            html_url=pipeline.get("web_url"),
        )

    async def list_repositories(self, credentials: PipelineCredentials) -> list[Repository]:
        try:
            projects = await self._get_json(
                credentials,
                "/projects",
                params={"per_page": 100, "order_by": "last_activity_at", "sort": "desc", "membership": "true"},
            )
        except httpx.HTTPError as e:
            raise self._fail("list repositories", e)
        return [
            Repository(
                id=p["path_with_namespace"],
                name=p["path"],
                full_name=p["path_with_namespace"],
                default_branch=p.get("default_branch") or "main",
                url=p["web_url"],
                private=p.get("visibility") != "public",
            )
            for p in projects
        ]

    async def list_branches(self, credentials: PipelineCredentials, repository_id: str) -> list[Branch]:
        project = encode_project(repository_id)
        try:
            info = await self._get_json(credentials, f"/projects/{project}")
            branches = await self._get_json(
                credentials, f"/projects/{project}/repository/branches", params={"per_page": 100}
            )
        except httpx.HTTPError as e:
            raise self._fail("list branches", e)
        default_branch = info.get("default_branch") or "main"
        return [Branch(name=b["name"], sha=b["commit"]["id"], default=b["name"] == default_branch) for b in branches]

    async def list_workflows(
        self, credentials: PipelineCredentials, repository_id: str, branch: str | None = None
    ) -> list[Workflow]:
        project = encode_project(repository_id)
        try:
            info = await self._get_json(credentials, f"/projects/{project}")
            target = branch or info.get("default_branch") or "main"
            pipelines = await self._get_json(
                credentials, f"/projects/{project}/pipelines", params={"per_page": 100, "ref": target}
            )
        except httpx.HTTPError as e:
            raise self._fail("list workflows", e)

        workflows = [
            Workflow(
                id=f"pipeline-{target}",
                name=f"Pipeline for {target}",
                path=".gitlab-ci.yml",
                state="active",
                can_trigger=True,
            )
        ]
        if any(p.get("source") == "manual" for p in pipelines):
            workflows.append(
                Workflow(id="manual", name="Manual Pipeline", path=".gitlab-ci.yml", state="active", can_trigger=True)
            )
        return workflows

    async def trigger_workflow(
        self,
        credentials: PipelineCredentials,
        repository_id: str,
        workflow_id: str,
        ref: str,
        inputs: dict[str, Any] | None = None,
    ) -> PipelineRun:
        project = encode_project(repository_id)
        body: dict[str, Any] = {"ref": ref}
        if inputs:
            body["variables"] = [{"key": key, "value": str(value)} for key, value in inputs.items()]
        try:
            async with self._client(credentials) as client:
                created = await client.post(f"/projects/{project}/pipeline", json=body)
                created.raise_for_status()
                await asyncio.sleep(base.DISPATCH_SETTLE_SECONDS)
                pipeline = await client.get(f"/projects/{project}/pipelines/{created.json()['id']}")
                pipeline.raise_for_status()
        except httpx.HTTPError as e:
            raise self._fail("trigger pipeline", e)
        return self._map_pipeline(pipeline.json(), workflow_id)

    async def get_run_status(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> PipelineRun:
        try:
            pipeline = await self._get_json(credentials, f"/projects/{encode_project(repository_id)}/pipelines/{run_id}")
        except httpx.HTTPError as e:
            raise self._fail("get pipeline status", e)
        return self._map_pipeline(pipeline, "pipeline")

    async def list_run_jobs(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> list[Job]:
        try:
            jobs = await self._get_json(credentials, f"/projects/{encode_project(repository_id)}/pipelines/{run_id}/jobs")
        except httpx.HTTPError as e:
            raise self._fail("list jobs", e)
        return [
            Job(
                id=str(job["id"]),
                name=job["name"],
                status=map_status(job["status"]),
                conclusion=map_conclusion(job["status"]),
                started_at=parse_timestamp(job.get("started_at")),
                completed_at=parse_timestamp(job.get("finished_at")),
            )
            for job in jobs
        ]

    async def get_job_logs(
        self, credentials: PipelineCredentials, repository_id: str, run_id: str, job_id: str
    ) -> str:
        try:
            async with self._client(credentials) as client:
                response = await client.get(f"/projects/{encode_project(repository_id)}/jobs/{job_id}/trace")
                if response.status_code == 404:
                    return ""
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise self._fail("get job logs", e)

    async def cancel_run(self, credentials: PipelineCredentials, repository_id: str, run_id: str) -> None:
        try:
            async with self._client(credentials) as client:
                response = await client.post(f"/projects/{encode_project(repository_id)}/pipelines/{run_id}/cancel")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._fail("cancel pipeline", e)
