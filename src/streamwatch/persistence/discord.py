"""
Discord REST implementation of the message channel interface.

Only the three message endpoints are used; no gateway connection is opened.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from .base import PersistenceAdapter
from ..models.message import MessageContent, PersistedMessage
from ..models.stream import Position
from ..utils.config import DiscordConfig
from ..utils.errors import AdapterError, NotFoundError
from ..utils.logging import get_logger


logger = get_logger("streamwatch.discord")


class DiscordAdapter(PersistenceAdapter):
    """Posts, edits and lists channel messages as a bot user."""

    def __init__(self, config: DiscordConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
                headers={
                    "Authorization": f"Bot {self.config.token}",
                    "User-Agent": "DiscordBot (streamwatch, 0.1.0)",
                },
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.config.api_base}{path}"
        try:
            async with self._get_session().request(method, url, json=json, params=params) as resp:
                if resp.status == 404:
                    raise NotFoundError(f"HTTP 404: {method} {path}", status=404)
                if resp.status >= 400:
                    text = await resp.text()
                    raise AdapterError(f"HTTP {resp.status}: {text[:200]}", status=resp.status)
                if resp.status == 204:
                    return None
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AdapterError(f"{method} {path} failed: {e}", cause=e) from e

    async def create(self, channel_id: str, content: MessageContent) -> Position:
        data = await self._request(
            "POST", f"/channels/{channel_id}/messages", json=content.to_payload()
        )
        return Position(data["id"])

    async def edit(self, channel_id: str, position: Position, content: MessageContent) -> None:
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{position}", json=content.to_payload()
        )

    async def list_recent(self, channel_id: str, limit: int) -> List[PersistedMessage]:
        data = await self._request(
            "GET", f"/channels/{channel_id}/messages", params={"limit": limit}
        )
        messages = [
            PersistedMessage(
                position=Position(item["id"]),
                content=item.get("content") or "",
                embeds=item.get("embeds") or [],
            )
            for item in data
        ]
        logger.debug("listed_messages", channel_id=channel_id, count=len(messages))
        return messages
