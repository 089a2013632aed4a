from .base import PipelineCredentials, PipelineProvider
from .factory import PipelineProviderFactory
from .github import GitHubProvider
from .gitlab import GitLabProvider

__all__ = ["GitHubProvider", "GitLabProvider", "PipelineCredentials", "PipelineProvider", "PipelineProviderFactory"]
