"""Chat filter interface and result types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

FilterAction = Literal["drop", "flag"]


class FilterDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    BIDIRECTIONAL = "bidirectional"


@dataclass
class FilterContext:
    agent_id: str | None = None
    actor: Literal["user", "agent"] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FilterResult:
    filtered: bool
    action: FilterAction | None = None
    reason: str | None = None
    modified_message: str | None = None

    @classmethod
    def allow(cls) -> "FilterResult":
        return cls(filtered=False)


@dataclass
class AppliedFilterInfo:
    type: str
    display_name: str
    matched: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"type": self.type, "displayName": self.display_name, "matched": self.matched}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class FilterApplicationResult:
    message: str
    status: Literal["allowed", "filtered", "dropped"]
    timestamp: str
    applied_filters: list[AppliedFilterInfo] = field(default_factory=list)
    modified_message: str | None = None
    matched_filter: AppliedFilterInfo | None = None
    action: FilterAction | None = None

    @property
    def effective_message(self) -> str:
        return self.modified_message if self.modified_message is not None else self.message

    @property
    def is_filtered(self) -> bool:
        return self.status != "allowed"


class ChatFilter(ABC):
    @abstractmethod
    def get_type(self) -> str: ...

    @abstractmethod
    def get_display_name(self) -> str: ...

    @abstractmethod
    def get_direction(self) -> FilterDirection: ...

    @abstractmethod
    async def filter(self, message: str, context: FilterContext | None = None) -> FilterResult: ...
