"""
Unit tests for stream records, positions and message rendering.
"""

import pytest
from datetime import timedelta, timezone, datetime

from streamwatch.models.message import (
    PersistedMessage,
    decode,
    format_duration,
    managed_state,
    parse_duration,
    render,
    stub_content,
)
from streamwatch.models.stream import Entry, EntryBook, Position, Tier, VisualState, subset
from streamwatch.utils.errors import MalformedMessageError
from tests.fixtures.channel_fixtures import T0, make_stream


ICONS = ["https://icons/other.png", "https://icons/matched.png", "https://icons/known.png"]


class TestPosition:
    """Test message position ordering."""

    def test_snowflakes_compare_numerically(self):
        """Longer snowflakes are newer even though they sort lower as strings."""
        assert Position("999999999999999999") < Position("1000000000000000000")
        assert Position("42") == Position(42)

    def test_hashable(self):
        assert len({Position("7"), Position("7"), Position("8")}) == 2


class TestEntryBook:
    """Test extremal lookups on an entry book."""

    def test_oldest_and_newest(self):
        book = EntryBook()
        book["a"] = Entry(make_stream("A"), Position("20"))
        book["b"] = Entry(make_stream("B"), Position("5"))
        book["c"] = Entry(make_stream("C"), Position("100"))

        assert book.oldest() == "b"
        assert book.newest() == "c"

    def test_empty_book_raises(self):
        with pytest.raises(LookupError):
            EntryBook().oldest()
        with pytest.raises(LookupError):
            EntryBook().newest()


class TestSubset:
    def test_keeps_matched_and_known(self):
        snapshot = {
            "a": make_stream("A", tier=Tier.OTHER),
            "b": make_stream("B", tier=Tier.MATCHED),
            "c": make_stream("C", tier=Tier.KNOWN),
        }
        assert set(subset(snapshot)) == {"b", "c"}


class TestDurations:
    """Test footer duration text."""

    @pytest.mark.parametrize("elapsed,text", [
        (timedelta(seconds=30), ""),
        (timedelta(minutes=42, seconds=59), "42m"),
        (timedelta(hours=1, minutes=5), "1h5m"),
        (timedelta(hours=2), "2h0m"),
    ])
    def test_format(self, elapsed, text):
        assert format_duration(elapsed) == text

    def test_parse(self):
        assert parse_duration("1h5m") == timedelta(hours=1, minutes=5)
        assert parse_duration("42m") == timedelta(minutes=42)
        assert parse_duration("3m20s") == timedelta(minutes=3, seconds=20)
        assert parse_duration("") == timedelta()

    @pytest.mark.parametrize("text", ["abc", "5x", "1h 5m", "m5"])
    def test_parse_rejects_garbage(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestRender:
    """Test message rendering."""

    def test_stub_is_push_text(self):
        assert stub_content(make_stream("Alice", "Sunshine 120")).content == "Alice: Sunshine 120"

    def test_live_embed(self):
        stream = make_stream("Alice", "Sunshine 120", tier=Tier.KNOWN)
        embed = render(stream, VisualState.LIVE, ICONS).embeds[0]

        assert embed["author"]["name"] == "Alice is live"
        assert embed["author"]["url"] == "https://twitch.tv/alice"
        assert embed["author"]["icon_url"] == ICONS[2]
        assert embed["description"] == "[Sunshine 120](https://twitch.tv/alice)"
        assert embed["color"] == 0x00ff00
        assert embed["thumbnail"]["url"] == stream.thumbnail
        assert "footer" not in embed
        assert embed["timestamp"] == "2024-03-01T12:00:00Z"

    def test_ended_embed_drops_thumbnail_and_shows_length(self):
        stream = make_stream("Alice")
        stream.elapsed = timedelta(hours=1, minutes=12, seconds=40)

        embed = render(stream, VisualState.EXPIRING, ICONS).embeds[0]

        assert embed["author"]["name"] == "Alice was live"
        assert embed["color"] == 0xff8000
        assert "thumbnail" not in embed
        assert embed["footer"]["text"] == "1h12m"


class TestDecode:
    """Test decoding rendered messages back into streams."""

    def _message(self, stream, state):
        return PersistedMessage(Position("1"), "", render(stream, state, ICONS).embeds)

    def test_live_message(self):
        original = make_stream("Alice", "[JP] any% [practice]", tier=Tier.MATCHED)
        decoded = decode(self._message(original, VisualState.LIVE), ICONS)

        assert decoded.user == "Alice"
        assert decoded.url_user == "alice"
        assert decoded.title == "[JP] any% [practice]"
        assert decoded.started_at == T0
        assert decoded.elapsed == timedelta()
        assert decoded.thumbnail == original.thumbnail
        assert decoded.tier == Tier.MATCHED

    def test_blank_icons_decode_as_other(self):
        blank = ["", "", ""]
        message = PersistedMessage(
            Position("1"), "", render(make_stream("Alice", tier=Tier.OTHER), VisualState.LIVE, blank).embeds
        )

        assert decode(message, blank).tier == Tier.OTHER

    def test_expiring_message_keeps_length(self):
        original = make_stream("Bob")
        original.elapsed = timedelta(minutes=95)

        decoded = decode(self._message(original, VisualState.EXPIRING), ICONS)

        assert decoded.elapsed == timedelta(minutes=95)
        assert decoded.ended_at == T0 + timedelta(minutes=95)

    def test_missing_footer_means_zero_length(self):
        message = self._message(make_stream("Bob"), VisualState.EXPIRING)
        message.embeds[0].pop("footer", None)

        assert decode(message, ICONS).elapsed == timedelta()

    def test_timestamp_with_offset(self):
        message = self._message(make_stream("Bob"), VisualState.LIVE)
        message.embeds[0]["timestamp"] = "2024-03-01T12:00:00+00:00"

        assert decode(message, ICONS).started_at == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)

    def test_bad_timestamp_fails_loudly(self):
        message = self._message(make_stream("Bob"), VisualState.LIVE)
        message.embeds[0]["timestamp"] = "yesterday"

        with pytest.raises(MalformedMessageError):
            decode(message, ICONS)

    def test_bad_footer_fails_loudly(self):
        message = self._message(make_stream("Bob"), VisualState.EXPIRING)
        message.embeds[0]["footer"] = {"text": "ages"}

        with pytest.raises(MalformedMessageError):
            decode(message, ICONS)

    def test_missing_author_fails_loudly(self):
        message = self._message(make_stream("Bob"), VisualState.LIVE)
        del message.embeds[0]["author"]

        with pytest.raises(MalformedMessageError):
            decode(message, ICONS)

    def test_managed_state(self):
        live = self._message(make_stream("Bob"), VisualState.LIVE)
        assert managed_state(live) is VisualState.LIVE
        assert managed_state(PersistedMessage(Position("2"), "hello")) is None
        assert managed_state(PersistedMessage(Position("3"), "", [{"color": 0x123456}])) is None
        assert managed_state(PersistedMessage(Position("4"), "", live.embeds * 2)) is None
