"""
Request and response models for the agent-manager API.

Payloads use camelCase keys on the wire (see ``CamelModel``).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import Field, field_validator

from shared.schemas import CamelModel, require_text


class ContainerType(str, Enum):
    GENERIC = "generic"
    DOCKER = "docker"
    TERRAFORM = "terraform"
    KUBERNETES = "kubernetes"


# =============================================================================
# Agents
# =============================================================================


class DeploymentConfigurationInput(CamelModel):
    provider_type: str
    repository_id: str
    default_branch: str | None = None
    workflow_id: str | None = None
    provider_token: str
    provider_base_url: str | None = None


class CreateAgentRequest(CamelModel):
    name: str
    description: str | None = None
    agent_type: str | None = None
    container_type: ContainerType = ContainerType.GENERIC
    git_repository_url: str | None = None
    create_virtual_workspace: bool = True
    create_ssh_connection: bool = True
    deployment_configuration: DeploymentConfigurationInput | None = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        return require_text(value, "Name is required")


class UpdateAgentRequest(CamelModel):
    name: str | None = None
    description: str | None = None


class PortCredentials(CamelModel):
    port: int
    password: str


class GitInfo(CamelModel):
    repository_url: str


class AgentResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    agent_type: str
    container_type: str
    vnc: PortCredentials | None = None
    ssh: PortCredentials | None = None
    git: GitInfo | None = None
    created_at: datetime
    updated_at: datetime


class CreateAgentResponse(AgentResponse):
    password: str


class ChatMessageResponse(CamelModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    actor: str
    message: str
    filtered: bool
    created_at: datetime


class AgentTypeInfo(CamelModel):
    type: str
    display_name: str


class ConfigResponse(CamelModel):
    git_repository_url: str | None = None
    agent_types: list[AgentTypeInfo]


# =============================================================================
# Files
# =============================================================================


class FileContent(CamelModel):
    content: str
    encoding: Literal["utf-8", "base64"]


class WriteFileRequest(CamelModel):
    content: str
    encoding: Literal["utf-8", "base64"] | None = None


class CreateFileRequest(CamelModel):
    type: Literal["file", "directory"]
    content: str | None = None


class MoveFileRequest(CamelModel):
    destination: str

    @field_validator("destination")
    @classmethod
    def _destination_required(cls, value: str) -> str:
        return require_text(value, "Destination path is required")


class FileNode(CamelModel):
    name: str
    type: Literal["file", "directory"]
    path: str
    size: int | None = None
    modified_at: datetime | None = None


# =============================================================================
# Version control
# =============================================================================


class GitFileStatus(CamelModel):
    path: str
    status: str
    type: Literal["staged", "unstaged", "untracked", "both"]
    is_binary: bool = False


class GitStatus(CamelModel):
    current_branch: str
    is_clean: bool
    has_unpushed_commits: bool
    ahead_count: int
    behind_count: int
    files: list[GitFileStatus]


class GitBranch(CamelModel):
    name: str
    ref: str
    is_current: bool
    is_remote: bool
    remote: str | None = None
    commit: str
    message: str
    ahead_count: int | None = None
    behind_count: int | None = None


class GitDiff(CamelModel):
    path: str
    original_content: str
    modified_content: str
    encoding: Literal["utf-8", "base64"]
    is_binary: bool
    original_size: int | None = None
    modified_size: int | None = None


class StageFilesRequest(CamelModel):
    files: list[str] = Field(default_factory=list)


class CommitRequest(CamelModel):
    message: str = ""


class PushOptions(CamelModel):
    force: bool = False


class RebaseRequest(CamelModel):
    branch: str


ConventionalType = Literal["feat", "fix", "chore", "docs", "style", "refactor", "test", "perf"]


class CreateBranchRequest(CamelModel):
    name: str
    use_conventional_prefix: bool = False
    conventional_type: ConventionalType | None = None
    base_branch: str | None = None


class ResolveConflictRequest(CamelModel):
    path: str
    strategy: str


# =============================================================================
# Environment variables
# =============================================================================


class EnvironmentVariableRequest(CamelModel):
    variable: str
    content: str

    @field_validator("variable")
    @classmethod
    def _variable_required(cls, value: str) -> str:
        return require_text(value, "Variable name is required")

    @field_validator("content")
    @classmethod
    def _content_required(cls, value: str) -> str:
        return require_text(value, "Content is required")


class EnvironmentVariableResponse(CamelModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    variable: str
    content: str | None = None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Deployments
# =============================================================================


class UpsertDeploymentConfigurationRequest(CamelModel):
    """Create (providerType, repositoryId, providerToken required) or partial update."""

    provider_type: str | None = None
    repository_id: str | None = None
    default_branch: str | None = None
    workflow_id: str | None = None
    provider_token: str | None = None
    provider_base_url: str | None = None

    @field_validator("provider_base_url")
    @classmethod
    def _base_url(cls, value: str | None) -> str | None:
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("Provider base URL must be a valid URL")
        return value


class DeploymentConfigurationResponse(CamelModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    provider_type: str
    repository_id: str
    default_branch: str | None = None
    workflow_id: str | None = None
    provider_base_url: str | None = None
    created_at: datetime
    updated_at: datetime


class TriggerWorkflowRequest(CamelModel):
    workflow_id: str
    ref: str
    inputs: dict[str, Any] | None = None

    @field_validator("workflow_id")
    @classmethod
    def _workflow_required(cls, value: str) -> str:
        return require_text(value, "Workflow ID is required")

    @field_validator("ref")
    @classmethod
    def _ref_required(cls, value: str) -> str:
        return require_text(value, "Ref is required")


class DeploymentRunResponse(CamelModel):
    id: uuid.UUID
    configuration_id: uuid.UUID
    provider_run_id: str
    run_name: str
    status: str
    conclusion: str | None = None
    ref: str
    sha: str
    workflow_id: str | None = None
    workflow_name: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    html_url: str | None = None
    created_at: datetime
    updated_at: datetime


class Repository(CamelModel):
    id: str
    name: str
    full_name: str
    default_branch: str
    url: str
    private: bool


class Branch(CamelModel):
    name: str
    sha: str
    default: bool


class Workflow(CamelModel):
    id: str
    name: str
    path: str
    state: str
    can_trigger: bool


class PipelineRun(CamelModel):
    id: str
    name: str
    status: str
    conclusion: str | None = None
    ref: str
    sha: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    workflow_id: str | None = None
    workflow_name: str | None = None
    html_url: str | None = None


class Job(CamelModel):
    id: str
    name: str
    status: str
    conclusion: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
