from .base import AgentProvider
from .cursor import CursorAgentProvider
from .factory import AgentProviderFactory
from .opencode import OpenCodeAgentProvider

__all__ = ["AgentProvider", "AgentProviderFactory", "CursorAgentProvider", "OpenCodeAgentProvider"]
