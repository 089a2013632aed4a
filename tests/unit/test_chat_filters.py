"""
Tests for chat filter registration and application.
"""
import pytest

from services.agent_manager.providers.chat_filters import (
    ChatFilter,
    ChatFilterFactory,
    FilterContext,
    FilterDirection,
    FilterResult,
    IncomingChatFilter,
    NoopChatFilter,
    OutgoingChatFilter,
)


class DropFilter(ChatFilter):
    def __init__(self, filter_type="drop-all", direction=FilterDirection.INCOMING):
        self._type = filter_type
        self._direction = direction

    def get_type(self):
        return self._type

    def get_display_name(self):
        return "Drop Everything"

    def get_direction(self):
        return self._direction

    async def filter(self, message, context=None):
        return FilterResult(filtered=True, action="drop", reason="Blocked")


class RewriteFilter(ChatFilter):
    def get_type(self):
        return "rewrite"

    def get_display_name(self):
        return "Rewrite"

    def get_direction(self):
        return FilterDirection.INCOMING

    async def filter(self, message, context=None):
        return FilterResult(filtered=True, action="flag", reason="Rewritten", modified_message=message.upper())


@pytest.fixture
def factory():
    factory = ChatFilterFactory()
    factory.register_filter(NoopChatFilter())
    factory.register_filter(IncomingChatFilter())
    factory.register_filter(OutgoingChatFilter())
    return factory


class TestRegistry:
    """Registration and lookup."""

    def test_registered_types(self, factory):
        """Types are listed in registration order."""
        assert factory.get_registered_types() == ["noop", "incoming-example", "outgoing-example"]

    def test_direction_selection(self, factory):
        """Bidirectional filters apply to both directions."""
        incoming = [f.get_type() for f in factory.get_filters_by_direction(FilterDirection.INCOMING)]
        outgoing = [f.get_type() for f in factory.get_filters_by_direction(FilterDirection.OUTGOING)]
        assert incoming == ["noop", "incoming-example"]
        assert outgoing == ["noop", "outgoing-example"]

    def test_unknown_filter(self, factory):
        """Looking up an unknown type lists the available ones."""
        with pytest.raises(ValueError, match="Available types: noop, incoming-example, outgoing-example"):
            factory.get_filter("missing")

    def test_reregistering_overwrites(self, factory):
        """Registering the same type twice keeps the latest instance."""
        replacement = NoopChatFilter()
        factory.register_filter(replacement)
        assert factory.get_filter("noop") is replacement
        assert len(factory.get_all_filters()) == 3


class TestApplyFilters:
    """apply_filters outcomes."""

    @pytest.mark.asyncio
    async def test_allowed(self, factory):
        """Ordinary messages pass every filter."""
        result = await factory.apply_filters(FilterDirection.INCOMING, "hello", FilterContext(actor="user"))
        assert result.status == "allowed"
        assert not result.is_filtered
        assert [f.matched for f in result.applied_filters] == [False, False]

    @pytest.mark.asyncio
    async def test_incoming_keyword_flags(self, factory):
        """The incoming example flags the test-filter keyword, case-insensitively."""
        result = await factory.apply_filters(FilterDirection.INCOMING, "please TEST-FILTER this")
        assert result.status == "filtered"
        assert result.action == "flag"
        assert result.matched_filter.type == "incoming-example"
        assert result.effective_message == "please TEST-FILTER this"

    @pytest.mark.asyncio
    async def test_outgoing_keyword_only_outgoing(self, factory):
        """The outgoing keyword does not trip outgoing filters for plain test-filter."""
        result = await factory.apply_filters(FilterDirection.OUTGOING, "contains test-filter only")
        assert result.status == "allowed"
        flagged = await factory.apply_filters(FilterDirection.OUTGOING, "test-filter-outgoing")
        assert flagged.status == "filtered"
        assert flagged.matched_filter.type == "outgoing-example"

    @pytest.mark.asyncio
    async def test_drop_stops_evaluation(self, factory):
        """A drop match ends evaluation and marks the message dropped."""
        factory.register_filter(DropFilter())
        factory.register_filter(RewriteFilter())
        result = await factory.apply_filters(FilterDirection.INCOMING, "anything")
        assert result.status == "dropped"
        assert result.matched_filter.type == "drop-all"
        assert "rewrite" not in [f.type for f in result.applied_filters]

    @pytest.mark.asyncio
    async def test_first_match_decides(self, factory):
        """Later matches are recorded but the first one decides the outcome."""
        factory.register_filter(RewriteFilter())
        result = await factory.apply_filters(FilterDirection.INCOMING, "test-filter me")
        assert result.matched_filter.type == "incoming-example"
        assert result.modified_message is None
        assert [f.matched for f in result.applied_filters] == [False, True, True]

    @pytest.mark.asyncio
    async def test_modified_message(self):
        """A filter may rewrite the message."""
        factory = ChatFilterFactory()
        factory.register_filter(RewriteFilter())
        result = await factory.apply_filters(FilterDirection.INCOMING, "quiet")
        assert result.effective_message == "QUIET"

    def test_applied_filter_serialization(self):
        """Applied filter info uses camelCase keys and omits an empty reason."""
        from services.agent_manager.providers.chat_filters import AppliedFilterInfo

        info = AppliedFilterInfo(type="noop", display_name="No-op Filter", matched=False)
        assert info.to_dict() == {"type": "noop", "displayName": "No-op Filter", "matched": False}
