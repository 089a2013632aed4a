from .base import (
    AppliedFilterInfo,
    ChatFilter,
    FilterApplicationResult,
    FilterContext,
    FilterDirection,
    FilterResult,
)
from .builtin import IncomingChatFilter, NoopChatFilter, OutgoingChatFilter
from .factory import ChatFilterFactory

__all__ = [
    "AppliedFilterInfo",
    "ChatFilter",
    "ChatFilterFactory",
    "FilterApplicationResult",
    "FilterContext",
    "FilterDirection",
    "FilterResult",
    "IncomingChatFilter",
    "NoopChatFilter",
    "OutgoingChatFilter",
]
