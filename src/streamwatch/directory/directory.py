"""
Directory of known streamers, read from posts in a Discord channel.

Each directory post looks like::

    dir <optional comment>
    <discord user id> <twitch user>
    <discord user id> <twitch user>

The mapping is replaced as a whole on every reload, so concurrent readers
always see either the old or the new directory, never a mix.
"""

import asyncio
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from ..models.message import PersistedMessage
from ..persistence.base import PersistenceAdapter, RateLimiter
from ..utils.config import DirectoryConfig
from ..utils.logging import get_logger
from ..worker import BaseWorker


logger = get_logger("streamwatch.directory")

POST_MARKER = "dir"


def parse_directory_posts(messages: Iterable[PersistedMessage]) -> Dict[str, str]:
    """Collect ``twitch user -> discord user id`` from directory posts."""
    data: Dict[str, str] = {}
    owners: Dict[str, str] = {}
    for message in messages:
        lines = message.content.splitlines()
        if not lines or not lines[0].startswith(POST_MARKER):
            continue
        for line in lines[1:]:
            line = line.strip()
            if not line:
                continue
            discord_id, _, twitch_user = line.partition(" ")
            twitch_user = twitch_user.strip().lower()
            if not twitch_user:
                logger.warning("directory_line_skipped", line=line, position=str(message.position))
                continue
            if twitch_user in data:
                logger.warning("twitch_user_declared_twice", user=twitch_user)
            if discord_id in owners:
                logger.warning("discord_user_declared_twice", discord_id=discord_id)
            data[twitch_user] = discord_id
            owners[discord_id] = twitch_user
    return data


class Directory:
    """Read-mostly lookup of known streamers."""

    def __init__(self, data: Optional[Mapping[str, str]] = None):
        self._data: Mapping[str, str] = MappingProxyType({k.lower(): v for k, v in (data or {}).items()})

    def lookup(self, user: str) -> str:
        """Discord user id for ``user``, or an empty string."""
        return self._data.get(user.lower(), "")

    def __contains__(self, user: object) -> bool:
        return isinstance(user, str) and user.lower() in self._data

    def __len__(self) -> int:
        return len(self._data)

    def replace(self, data: Mapping[str, str]) -> None:
        """Swap in a complete new mapping."""
        self._data = MappingProxyType({k.lower(): v for k, v in data.items()})

    async def load(
        self,
        adapter: PersistenceAdapter,
        channel_id: str,
        limit: int = 100,
        limiter: Optional[RateLimiter] = None,
    ) -> None:
        """Read the directory channel and swap in the result."""
        if limiter is not None:
            async with limiter:
                messages = await adapter.list_recent(channel_id, limit)
        else:
            messages = await adapter.list_recent(channel_id, limit)
        self.replace(parse_directory_posts(messages))
        logger.info("directory_loaded", channel_id=channel_id, entries=len(self))


class DirectoryRefresher(BaseWorker):
    """Reloads a ``Directory`` on a fixed interval."""

    def __init__(self, directory: Directory, adapter: PersistenceAdapter, config: DirectoryConfig):
        super().__init__("directory")
        self.directory = directory
        self.adapter = adapter
        self.config = config

    async def _start(self) -> None:
        self._spawn(self._refresh_loop(), name="directory-refresh")

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.refresh_interval)
            try:
                await self.directory.load(self.adapter, self.config.channel_id, self.config.history_limit)
            except Exception as e:
                # Keep serving the previous directory
                self.logger.error("directory_refresh_failed", error=str(e), error_type=type(e).__name__)

    def _health_details(self):
        return {"entries": len(self.directory)}
