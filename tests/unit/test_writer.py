"""
Unit tests for MessageWriter retry and failure mapping.
"""

import pytest

from streamwatch.models.message import managed_state
from streamwatch.models.stream import Entry, Position, VisualState
from streamwatch.persistence.base import RateLimiter
from streamwatch.sync.writer import MessageWriter
from streamwatch.utils.errors import AmbiguousCreateError, ReloadRequired, StaleHandleError
from tests.fixtures.channel_fixtures import CHANNEL, make_stream


ICONS = ["", "", ""]


@pytest.fixture
def writer(channel):
    return MessageWriter(channel, CHANNEL, ICONS, RateLimiter(0), retry_delay=0)


class TestCreate:
    """Test message creation."""

    @pytest.mark.asyncio
    async def test_posts_stub(self, writer, channel):
        position = await writer.create(make_stream("Alice", "Celeste"))

        assert channel.message(CHANNEL, position).content == "Alice: Celeste"
        assert writer.creates == 1

    @pytest.mark.asyncio
    async def test_failed_create_is_not_retried(self, writer, channel):
        channel.fail_creates = 1

        with pytest.raises(AmbiguousCreateError) as exc_info:
            await writer.create(make_stream("Alice"))

        assert isinstance(exc_info.value, ReloadRequired)
        assert channel.count("create") == 1
        assert writer.creates == 0


class TestEdit:
    """Test message edits."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, writer, channel):
        stream = make_stream("Alice")
        entry = Entry(stream, await writer.create(stream))
        channel.fail_edits = 3

        await writer.edit(entry, VisualState.LIVE)

        assert channel.count("edit") == 4
        assert managed_state(channel.message(CHANNEL, entry.position)) is VisualState.LIVE
        assert writer.edits == 1

    @pytest.mark.asyncio
    async def test_missing_message_is_stale(self, writer, channel):
        stream = make_stream("Alice")
        entry = Entry(stream, await writer.create(stream))
        channel.delete(CHANNEL, entry.position)

        with pytest.raises(StaleHandleError):
            await writer.edit(entry, VisualState.LIVE)

        assert channel.count("edit") == 1

    @pytest.mark.asyncio
    async def test_no_icon_when_blank(self, writer, channel):
        stream = make_stream("Alice")
        entry = Entry(stream, await writer.create(stream))

        await writer.edit(entry, VisualState.LIVE)

        author = channel.message(CHANNEL, entry.position).embeds[0]["author"]
        assert "icon_url" not in author

    @pytest.mark.asyncio
    async def test_unknown_position(self, writer):
        with pytest.raises(StaleHandleError):
            await writer.edit(Entry(make_stream("Bob"), Position("1")), VisualState.EXPIRING)
