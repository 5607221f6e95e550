"""
Unit tests for the Discord REST adapter's request and error mapping.
"""

import asyncio
import pytest

import aiohttp

from streamwatch.models.message import MessageContent
from streamwatch.models.stream import Position
from streamwatch.persistence.discord import DiscordAdapter
from streamwatch.utils.config import DiscordConfig
from streamwatch.utils.errors import AdapterError, NotFoundError
from tests.fixtures.http_fixtures import FakeResponse, FakeSession


def make_adapter(*responses):
    session = FakeSession(*responses)
    return DiscordAdapter(DiscordConfig(token="t", api_base="https://discord.test/api"), session=session), session


class TestDiscordAdapter:
    """Test endpoint use and status mapping."""

    @pytest.mark.asyncio
    async def test_create_posts_payload(self):
        adapter, session = make_adapter(FakeResponse(200, {"id": "1234567890123456789"}))

        position = await adapter.create("55", MessageContent(content="Alice: hi"))

        assert position == Position("1234567890123456789")
        method, url, kwargs = session.requests[0]
        assert method == "POST"
        assert url == "https://discord.test/api/channels/55/messages"
        assert kwargs["json"] == {"content": "Alice: hi", "embeds": []}

    @pytest.mark.asyncio
    async def test_edit_patches_message(self):
        adapter, session = make_adapter(FakeResponse(200, {}))

        await adapter.edit("55", Position("99"), MessageContent(embeds=[{"color": 1}]))

        method, url, _ = session.requests[0]
        assert method == "PATCH"
        assert url == "https://discord.test/api/channels/55/messages/99"

    @pytest.mark.asyncio
    async def test_list_recent(self):
        adapter, session = make_adapter(FakeResponse(200, [
            {"id": "3", "content": "", "embeds": [{"color": 0x00ff00}]},
            {"id": "2", "content": "hello", "embeds": None},
        ]))

        messages = await adapter.list_recent("55", 100)

        assert [str(m.position) for m in messages] == ["3", "2"]
        assert messages[1].embeds == []
        assert session.requests[0][2]["params"] == {"limit": 100}

    @pytest.mark.asyncio
    async def test_404_is_not_found(self):
        adapter, _ = make_adapter(FakeResponse(404, text="Unknown Message"))

        with pytest.raises(NotFoundError):
            await adapter.edit("55", Position("99"), MessageContent())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 429, 500, 502])
    async def test_other_statuses_are_adapter_errors(self, status):
        adapter, _ = make_adapter(FakeResponse(status, text="nope"))

        with pytest.raises(AdapterError) as exc_info:
            await adapter.edit("55", Position("99"), MessageContent())

        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("reset"), asyncio.TimeoutError()])
    async def test_transport_errors_are_adapter_errors(self, error):
        adapter, _ = make_adapter(error)

        with pytest.raises(AdapterError):
            await adapter.list_recent("55", 10)

    @pytest.mark.asyncio
    async def test_borrowed_session_is_not_closed(self):
        adapter, session = make_adapter()

        await adapter.close()

        assert not session.closed
