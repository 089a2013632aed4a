"""
CI/CD deployments for agents.

Each agent may carry one ``DeploymentConfiguration`` (provider, repository
and an encrypted token). Runs triggered through it are mirrored locally as
``DeploymentRun`` rows keyed by the provider's run id.
"""

import logging
import uuid
from sqlalchemy.orm import Session

from shared.errors import BadRequestError, NotFoundError

from ..models import DeploymentConfiguration, DeploymentRun
from ..providers.pipelines import PipelineCredentials, PipelineProvider, PipelineProviderFactory
from ..repositories import DeploymentConfigurationRepository, DeploymentRunRepository
from ..schemas import (
    Branch,
    DeploymentConfigurationInput,
    Job,
    PipelineRun,
    Repository,
    TriggerWorkflowRequest,
    UpsertDeploymentConfigurationRequest,
    Workflow,
)
from .common import require_agent

logger = logging.getLogger(__name__)


class DeploymentsService:
    def __init__(self, session: Session, pipeline_factory: PipelineProviderFactory):
        self.session = session
        self.pipeline_factory = pipeline_factory

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_configuration(self, agent_id: uuid.UUID) -> DeploymentConfiguration | None:
        return DeploymentConfigurationRepository.get_for_agent(self.session, agent_id)

    def _require_configuration(self, agent_id: uuid.UUID) -> DeploymentConfiguration:
        config = DeploymentConfigurationRepository.get_for_agent(self.session, agent_id)
        if config is None:
            raise NotFoundError(f"Deployment configuration for agent {agent_id} not found")
        return config

    def upsert_configuration(
        self,
        agent_id: uuid.UUID,
        dto: UpsertDeploymentConfigurationRequest | DeploymentConfigurationInput,
    ) -> DeploymentConfiguration:
        require_agent(self.session, agent_id)
        existing = DeploymentConfigurationRepository.get_for_agent(self.session, agent_id)

        provider_type = dto.provider_type
        if not provider_type:
            if existing is None:
                raise BadRequestError("Cannot update deployment configuration: no existing configuration found")
            provider_type = existing.provider_type

        if not self.pipeline_factory.has_provider(provider_type):
            raise BadRequestError(f"Pipeline provider '{provider_type}' is not available")

        if existing is None:
            if not dto.repository_id:
                raise BadRequestError("Repository ID is required")
            if not dto.provider_token:
                raise BadRequestError("Provider token is required")
            existing = DeploymentConfiguration(agent_id=agent_id)

        existing.provider_type = provider_type
        for field_name in ("repository_id", "default_branch", "workflow_id", "provider_token", "provider_base_url"):
            value = getattr(dto, field_name)
            if value is not None:
                setattr(existing, field_name, value)

        config = DeploymentConfigurationRepository.save(self.session, existing)
        logger.info(f"Saved {provider_type} deployment configuration for agent {agent_id}")
        return config

    def delete_configuration(self, agent_id: uuid.UUID) -> None:
        config = DeploymentConfigurationRepository.get_for_agent(self.session, agent_id)
        if config is not None:
            DeploymentConfigurationRepository.delete(self.session, config)

    def _provider(self, config: DeploymentConfiguration) -> tuple[PipelineProvider, PipelineCredentials]:
        provider = self.pipeline_factory.get_provider(config.provider_type)
        return provider, PipelineCredentials(token=config.provider_token, base_url=config.provider_base_url)

    # =========================================================================
    # Repository browsing
    # =========================================================================

    async def list_repositories(self, agent_id: uuid.UUID) -> list[Repository]:
        provider, credentials = self._provider(self._require_configuration(agent_id))
        return await provider.list_repositories(credentials)

    async def list_branches(self, agent_id: uuid.UUID, repository_id: str) -> list[Branch]:
        provider, credentials = self._provider(self._require_configuration(agent_id))
        return await provider.list_branches(credentials, repository_id)

    async def list_workflows(self, agent_id: uuid.UUID, repository_id: str, branch: str | None = None) -> list[Workflow]:
        provider, credentials = self._provider(self._require_configuration(agent_id))
        return await provider.list_workflows(credentials, repository_id, branch)

    # =========================================================================
    # Runs
    # =========================================================================

    def _store_run(self, config: DeploymentConfiguration, run: PipelineRun) -> DeploymentRun:
        row = DeploymentRunRepository.get_by_provider_run_id(self.session, config.id, run.id)
        if row is None:
            row = DeploymentRun(configuration_id=config.id, provider_run_id=run.id)
        row.run_name = run.name
        row.status = run.status
        row.conclusion = run.conclusion
        row.ref = run.ref
        row.sha = run.sha
        row.workflow_id = run.workflow_id
        row.workflow_name = run.workflow_name
        row.started_at = run.started_at
        row.completed_at = run.completed_at
        row.html_url = run.html_url
        return DeploymentRunRepository.save(self.session, row)

    def _require_run(self, agent_id: uuid.UUID, config: DeploymentConfiguration, run_id: str) -> DeploymentRun:
        try:
            row = DeploymentRunRepository.get(self.session, uuid.UUID(str(run_id)))
        except ValueError:
            row = None
        if row is None:
            raise NotFoundError(f"Deployment run with ID {run_id} not found")
        if row.configuration_id != config.id:
            raise BadRequestError(f"Deployment run {run_id} does not belong to agent {agent_id}")
        return row

    async def trigger_workflow(self, agent_id: uuid.UUID, dto: TriggerWorkflowRequest) -> DeploymentRun:
        config = self._require_configuration(agent_id)
        provider, credentials = self._provider(config)
        run = await provider.trigger_workflow(credentials, config.repository_id, dto.workflow_id, dto.ref, dto.inputs)
        logger.info(f"Triggered workflow {dto.workflow_id} on {dto.ref} for agent {agent_id} (run {run.id})")
        return self._store_run(config, run)

    def list_runs(self, agent_id: uuid.UUID, limit: int = 50, offset: int = 0) -> list[DeploymentRun]:
        config = self._require_configuration(agent_id)
        return DeploymentRunRepository.list_for_configuration(self.session, config.id, limit=limit, offset=offset)

    async def get_run_status(self, agent_id: uuid.UUID, run_id: str) -> DeploymentRun:
        config = self._require_configuration(agent_id)
        row = self._require_run(agent_id, config, run_id)
        provider, credentials = self._provider(config)
        run = await provider.get_run_status(credentials, config.repository_id, row.provider_run_id)
        return self._store_run(config, run)

    async def get_run_logs(self, agent_id: uuid.UUID, run_id: str) -> str:
        config = self._require_configuration(agent_id)
        row = self._require_run(agent_id, config, run_id)
        provider, credentials = self._provider(config)
        return await provider.get_run_logs(credentials, config.repository_id, row.provider_run_id)

    async def list_run_jobs(self, agent_id: uuid.UUID, run_id: str) -> list[Job]:
        config = self._require_configuration(agent_id)
        row = self._require_run(agent_id, config, run_id)
        provider, credentials = self._provider(config)
        return await provider.list_run_jobs(credentials, config.repository_id, row.provider_run_id)

    async def get_job_logs(self, agent_id: uuid.UUID, run_id: str, job_id: str) -> str:
        config = self._require_configuration(agent_id)
        row = self._require_run(agent_id, config, run_id)
        provider, credentials = self._provider(config)
        return await provider.get_job_logs(credentials, config.repository_id, row.provider_run_id, job_id)

    async def cancel_run(self, agent_id: uuid.UUID, run_id: str) -> None:
        config = self._require_configuration(agent_id)
        row = self._require_run(agent_id, config, run_id)
        provider, credentials = self._provider(config)
        await provider.cancel_run(credentials, config.repository_id, row.provider_run_id)
        row.status = "cancelled"
        row.conclusion = "cancelled"
        DeploymentRunRepository.save(self.session, row)

