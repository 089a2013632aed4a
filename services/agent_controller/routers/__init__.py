from .agents import router as agents_router
from .clients import router as clients_router
from .deployments import router as deployments_router
from .environment import router as environment_router
from .files import router as files_router
from .provisioning import router as provisioning_router
from .vcs import router as vcs_router

__all__ = [
    "agents_router",
    "clients_router",
    "deployments_router",
    "environment_router",
    "files_router",
    "provisioning_router",
    "vcs_router",
]
