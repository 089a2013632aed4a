"""Built-in chat filters."""

from .base import ChatFilter, FilterContext, FilterDirection, FilterResult


class NoopChatFilter(ChatFilter):
    """Never filters."""

    def get_type(self) -> str:
        return "noop"

    def get_display_name(self) -> str:
        return "No-op Filter"

    def get_direction(self) -> FilterDirection:
        return FilterDirection.BIDIRECTIONAL

    async def filter(self, message: str, context: FilterContext | None = None) -> FilterResult:
        return FilterResult.allow()


class IncomingChatFilter(ChatFilter):
    """Flags user messages containing the ``test-filter`` keyword."""

    KEYWORD = "test-filter"

    def get_type(self) -> str:
        return "incoming-example"

    def get_display_name(self) -> str:
        return "Incoming Filter Example"

    def get_direction(self) -> FilterDirection:
        return FilterDirection.INCOMING

    async def filter(self, message: str, context: FilterContext | None = None) -> FilterResult:
        if self.KEYWORD in message.lower():
            return FilterResult(filtered=True, action="flag", reason="Message contains test-filter keyword")
        return FilterResult.allow()


class OutgoingChatFilter(ChatFilter):
    """Flags agent responses containing the ``test-filter-outgoing`` keyword."""

    KEYWORD = "test-filter-outgoing"

    def get_type(self) -> str:
        return "outgoing-example"

    def get_display_name(self) -> str:
        return "Outgoing Filter Example"

    def get_direction(self) -> FilterDirection:
        return FilterDirection.OUTGOING

    async def filter(self, message: str, context: FilterContext | None = None) -> FilterResult:
        if self.KEYWORD in message.lower():
            return FilterResult(filtered=True, action="flag", reason="Response contains test-filter-outgoing keyword")
        return FilterResult.allow()
