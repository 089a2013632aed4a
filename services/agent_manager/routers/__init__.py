from .agents import router as agents_router
from .config import router as config_router
from .deployments import router as deployments_router
from .environment import router as environment_router
from .files import router as files_router
from .vcs import router as vcs_router

__all__ = [
    "agents_router",
    "config_router",
    "deployments_router",
    "environment_router",
    "files_router",
    "vcs_router",
]
