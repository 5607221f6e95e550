"""
Process wiring: one Twitch poller feeding every configured agent.
"""

import asyncio
from typing import List, Optional

from .directory.directory import Directory, DirectoryRefresher
from .persistence.base import PersistenceAdapter
from .persistence.discord import DiscordAdapter
from .sync.agent import Agent
from .sync.reconciler import Clock, utc_now
from .twitch.client import TwitchClient
from .utils.config import StreamwatchConfig
from .utils.errors import ConfigurationError, TwitchError
from .utils.logging import get_logger


logger = get_logger("streamwatch.service")


class StreamService:
    """Polls live streams and fans each snapshot out to the agents."""

    def __init__(
        self,
        config: StreamwatchConfig,
        adapter: Optional[PersistenceAdapter] = None,
        twitch: Optional[TwitchClient] = None,
        clock: Clock = utc_now,
    ):
        if not config.agents:
            raise ConfigurationError("no agents configured")

        self.config = config
        self.adapter = adapter or DiscordAdapter(config.discord)
        self.directory = Directory()
        self.twitch = twitch or TwitchClient(config.twitch, self.directory)
        self.agents: List[Agent] = [
            Agent(self.adapter, a.channel_id, a.filtered, config.sync, clock=clock)
            for a in config.agents
        ]
        self.refresher: Optional[DirectoryRefresher] = None
        if config.directory.channel_id:
            self.refresher = DirectoryRefresher(self.directory, self.adapter, config.directory)

    async def start(self) -> None:
        """Load the directory and start every agent."""
        if self.config.directory.channel_id:
            await self.directory.load(
                self.adapter, self.config.directory.channel_id, self.config.directory.history_limit
            )
        for agent in self.agents:
            await agent.start()
        if self.refresher:
            await self.refresher.start()
        logger.info("service_started", agents=len(self.agents), directory=len(self.directory))

    async def stop(self) -> None:
        if self.refresher:
            await self.refresher.stop()
        for agent in self.agents:
            await agent.stop()
        await self.twitch.close()
        await self.adapter.close()
        logger.info("service_stopped")

    async def poll_once(self) -> bool:
        """
        Fetch one snapshot and submit it to every agent.

        Returns False when the fetch failed; agents are left untouched.
        """
        try:
            snapshot = await self.twitch.fetch()
        except TwitchError as e:
            logger.warning("fetch_failed", error=str(e), status=e.status)
            return False

        logger.info("snapshot_fetched", streams=len(snapshot))
        for agent in self.agents:
            await agent.submit(agent.select(snapshot))
        return True

    async def run(self) -> None:
        """Run until cancelled or until an agent dies."""
        try:
            await self.start()
            while True:
                await self.poll_once()
                await asyncio.sleep(self.config.twitch.poll_interval)
        finally:
            await self.stop()
