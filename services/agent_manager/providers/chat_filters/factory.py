"""
Chat filter registry.

Filters run in registration order. The first filter that matches decides the
outcome of ``apply_filters``; a ``drop`` match stops evaluation.
"""

import logging

from shared.db import utcnow

from .base import (
    AppliedFilterInfo,
    ChatFilter,
    FilterApplicationResult,
    FilterContext,
    FilterDirection,
)

logger = logging.getLogger(__name__)


class ChatFilterFactory:
    def __init__(self):
        self._filters: dict[str, ChatFilter] = {}

    def register_filter(self, chat_filter: ChatFilter) -> None:
        filter_type = chat_filter.get_type()
        if filter_type in self._filters:
            logger.warning(f"Filter with type '{filter_type}' is already registered. Overwriting existing filter.")
        self._filters[filter_type] = chat_filter
        logger.info(f"Registered chat filter: {filter_type} ({chat_filter.get_direction().value})")

    def get_filters_by_direction(self, direction: FilterDirection) -> list[ChatFilter]:
        return [
            f
            for f in self._filters.values()
            if f.get_direction() in (direction, FilterDirection.BIDIRECTIONAL)
        ]

    def get_all_filters(self) -> list[ChatFilter]:
        return list(self._filters.values())

    def get_filter(self, filter_type: str) -> ChatFilter:
        chat_filter = self._filters.get(filter_type)
        if chat_filter is None:
            available = ", ".join(self._filters) or "none"
            raise ValueError(f"Chat filter with type '{filter_type}' not found. Available types: {available}")
        return chat_filter

    def has_filter(self, filter_type: str) -> bool:
        return filter_type in self._filters

    def get_registered_types(self) -> list[str]:
        return list(self._filters)

    async def apply_filters(
        self,
        direction: FilterDirection,
        message: str,
        context: FilterContext | None = None,
    ) -> FilterApplicationResult:
        result = FilterApplicationResult(message=message, status="allowed", timestamp=utcnow().isoformat())

        for chat_filter in self.get_filters_by_direction(direction):
            outcome = await chat_filter.filter(message, context)
            info = AppliedFilterInfo(
                type=chat_filter.get_type(),
                display_name=chat_filter.get_display_name(),
                matched=outcome.filtered,
                reason=outcome.reason,
            )
            result.applied_filters.append(info)

            if not outcome.filtered or result.matched_filter is not None:
                continue

            result.matched_filter = info
            result.action = outcome.action
            result.modified_message = outcome.modified_message
            if outcome.action == "drop":
                result.status = "dropped"
                logger.info(f"Message dropped by filter {info.type}: {info.reason}")
                break
            result.status = "filtered"

        return result
