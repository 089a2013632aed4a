"""
Tests for the GitHub Actions and GitLab CI pipeline providers.
"""
import json
from pathlib import Path

import httpx
import pytest
import respx

from services.agent_manager.providers.pipelines import GitHubProvider, GitLabProvider, PipelineCredentials
from services.agent_manager.providers.pipelines import base as pipelines_base
from services.agent_manager.providers.pipelines import github, gitlab
from shared.errors import BadRequestError

GITHUB = "https://api.github.com"
GITLAB = "https://gitlab.com/api/v4"


@pytest.fixture
def credentials():
    return PipelineCredentials(token="tok")


@pytest.fixture(autouse=True)
def no_dispatch_wait(monkeypatch):
    monkeypatch.setattr(pipelines_base, "DISPATCH_SETTLE_SECONDS", 0)


class TestStatusMapping:
    """Provider states to the shared vocabulary."""

    def test_github_conclusions(self):
        """neutral is skipped and timed_out is failure."""
        assert github.map_conclusion("neutral") == "skipped"
        assert github.map_conclusion("timed_out") == "failure"
        assert github.map_conclusion(None) is None
        assert github.map_status("in_progress") == "in_progress"

    @pytest.mark.parametrize(
        "status, mapped",
        [("pending", "queued"), ("running", "in_progress"), ("success", "completed"), ("canceled", "cancelled")],
    )
    def test_gitlab_status(self, status, mapped):
        """GitLab states map onto queued/in_progress/completed/cancelled."""
        assert gitlab.map_status(status) == mapped

    def test_gitlab_conclusion_from_terminal_state(self):
        """GitLab conclusions derive from terminal states only."""
        assert gitlab.map_conclusion("failed") == "failure"
        assert gitlab.map_conclusion("running") is None

    @pytest.mark.parametrize(
        "base_url, expected",
        [
            (None, GITLAB),
            ("https://git.example.com", "https://git.example.com/api/v4"),
            ("https://git.example.com/api", "https://git.example.com/api/v4"),
            ("https://git.example.com/api/v4/", "https://git.example.com/api/v4"),
        ],
    )
    def test_gitlab_base_url(self, base_url, expected):
        """Self-hosted base URLs are normalised to /api/v4."""
        assert GitLabProvider().api_base_url(PipelineCredentials(token="t", base_url=base_url)) == expected

    def test_gitlab_project_is_url_encoded(self):
        """group/project ids are encoded as one path segment."""
        assert gitlab.encode_project("group/sub/project") == "group%2Fsub%2Fproject"


class TestGitHub:
    """GitHub REST calls."""

    @pytest.mark.asyncio
    async def test_invalid_repository_id(self, credentials):
        """Repository ids must be owner/repo."""
        with pytest.raises(BadRequestError, match="Expected format: owner/repo"):
            await GitHubProvider().list_branches(credentials, "just-a-name")

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_branches_marks_default(self, credentials):
        """The repository's default branch is flagged."""
        respx.get(f"{GITHUB}/repos/acme/app").mock(return_value=httpx.Response(200, json={"default_branch": "main"}))
        respx.get(f"{GITHUB}/repos/acme/app/branches").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {"name": "main", "commit": {"sha": "aaa"}},
                    {"name": "dev", "commit": {"sha": "bbb"}},
                ],
            )
        )
        branches = await GitHubProvider().list_branches(credentials, "acme/app")
        assert [(b.name, b.default) for b in branches] == [("main", True), ("dev", False)]

    @pytest.mark.asyncio
    @respx.mock
    async def test_upstream_message_is_surfaced(self, credentials):
        """HTTP failures carry GitHub's message."""
        respx.get(f"{GITHUB}/user/repos").mock(return_value=httpx.Response(401, json={"message": "Bad credentials"}))
        with pytest.raises(BadRequestError, match="Failed to list repositories: Bad credentials"):
            await GitHubProvider().list_repositories(credentials)

    @pytest.mark.asyncio
    @respx.mock
    async def test_trigger_unknown_branch(self, credentials):
        """Dispatching to a missing branch is rejected before the dispatch."""
        respx.get(f"{GITHUB}/repos/acme/app/git/ref/heads/nope").mock(return_value=httpx.Response(404))
        with pytest.raises(BadRequestError, match="Branch 'nope' does not exist"):
            await GitHubProvider().trigger_workflow(credentials, "acme/app", "ci.yml", "nope")

    @pytest.mark.asyncio
    @respx.mock
    async def test_trigger_without_workflow_dispatch(self, credentials):
        """A 422 from the dispatch explains the workflow_dispatch requirement."""
        respx.get(f"{GITHUB}/repos/acme/app/git/ref/heads/main").mock(return_value=httpx.Response(200, json={}))
        respx.post(f"{GITHUB}/repos/acme/app/actions/workflows/ci.yml/dispatches").mock(
            return_value=httpx.Response(422, json={"message": "Unexpected inputs"})
        )
        with pytest.raises(BadRequestError, match="workflow_dispatch"):
            await GitHubProvider().trigger_workflow(credentials, "acme/app", "ci.yml", "main")

    @pytest.mark.asyncio
    @respx.mock
    async def test_trigger_returns_latest_run(self, credentials):
        """After dispatch the newest run of the workflow is returned."""
        respx.get(f"{GITHUB}/repos/acme/app/git/ref/heads/main").mock(return_value=httpx.Response(200, json={}))
        dispatch = respx.post(f"{GITHUB}/repos/acme/app/actions/workflows/ci.yml/dispatches").mock(
            return_value=httpx.Response(204)
        )
        respx.get(f"{GITHUB}/repos/acme/app/actions/workflows/ci.yml").mock(
            return_value=httpx.Response(200, json={"name": "CI"})
        )
        respx.get(f"{GITHUB}/repos/acme/app/actions/workflows/ci.yml/runs").mock(
            return_value=httpx.Response(
                200,
                json={
                    "workflow_runs": [
                        {
                            "id": 42,
                            "name": None,
                            "status": "queued",
                            "conclusion": None,
                            "head_branch": "main",
                            "head_sha": "abc123",
                            "created_at": "2024-05-01T10:00:00Z",
                            "html_url": "https://github.com/acme/app/actions/runs/42",
                        }
                    ]
                },
            )
        )
        run = await GitHubProvider().trigger_workflow(credentials, "acme/app", "ci.yml", "main", {"env": "prod"})
        assert run.id == "42"
        assert run.name == "CI"
        assert run.status == "queued"
        assert run.created_at.year == 2024
        assert json.loads(dispatch.calls.last.request.content) == {"ref": "main", "inputs": {"env": "prod"}}

    @pytest.mark.asyncio
    @respx.mock
    async def test_run_logs_join_jobs(self, credentials):
        """Run logs are the job logs separated by rules."""
        respx.get(f"{GITHUB}/repos/acme/app/actions/runs/7/jobs").mock(
            return_value=httpx.Response(
                200,
                json={"jobs": [{"id": 1, "name": "build", "status": "completed", "conclusion": "success"},
                               {"id": 2, "name": "test", "status": "completed", "conclusion": "failure"}]},
            )
        )
        respx.get(f"{GITHUB}/repos/acme/app/actions/jobs/1/logs").mock(return_value=httpx.Response(200, text="one"))
        respx.get(f"{GITHUB}/repos/acme/app/actions/jobs/2/logs").mock(return_value=httpx.Response(404))
        logs = await GitHubProvider().get_run_logs(credentials, "acme/app", "7")
        assert logs == "one\n\n---\n\n"


class TestPackageImports:
    def test_providers_import_relatively(self):
        """Provider modules reach the rest of the service through relative imports."""
        providers = Path(github.__file__).parents[1]
        offenders = [
            str(path.relative_to(providers))
            for path in providers.rglob("*.py")
            if "from services.agent_manager" in path.read_text()
        ]
        assert offenders == []
