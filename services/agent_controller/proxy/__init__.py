"""Proxies forwarding agent operations to remote agent-managers."""

from .agents import ClientAgentProxyService
from .base import ClientProxy, RemoteManagerClient
from .deployments import ClientAgentDeploymentsProxyService
from .environment import ClientAgentEnvironmentVariablesProxyService
from .files import ClientAgentFileSystemProxyService
from .vcs import ClientAgentVcsProxyService

__all__ = [
    "ClientAgentDeploymentsProxyService",
    "ClientAgentEnvironmentVariablesProxyService",
    "ClientAgentFileSystemProxyService",
    "ClientAgentProxyService",
    "ClientAgentVcsProxyService",
    "ClientProxy",
    "RemoteManagerClient",
]
