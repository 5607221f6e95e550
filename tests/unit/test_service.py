"""
Unit tests for snapshot fan-out to agents.
"""

import pytest

from streamwatch.models.stream import Tier
from streamwatch.service import StreamService
from streamwatch.utils.config import StreamwatchConfig
from streamwatch.utils.errors import AdapterError, ConfigurationError, TwitchError
from tests.fixtures.channel_fixtures import make_stream, wait_until


FULL = "300000000000000003"
FILTERED = "300000000000000004"


class FakeTwitch:
    """Returns queued snapshots; an exception in the queue is raised."""

    def __init__(self, *results):
        self.results = list(results)
        self.closed = False

    async def fetch(self):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


@pytest.fixture
def config(sync_settings):
    return StreamwatchConfig(agents=[f"{FULL}:false", f"{FILTERED}:true"], sync=sync_settings)


class TestStreamService:
    """Test polling and fan-out."""

    def test_needs_agents(self, channel):
        with pytest.raises(ConfigurationError):
            StreamService(StreamwatchConfig(), adapter=channel, twitch=FakeTwitch())

    @pytest.mark.asyncio
    async def test_snapshot_reaches_every_agent(self, config, channel, clock):
        snapshot = {
            "alice": make_stream("Alice", tier=Tier.KNOWN),
            "bob": make_stream("Bob"),
        }
        twitch = FakeTwitch(snapshot)
        service = StreamService(config, adapter=channel, twitch=twitch, clock=clock)
        await service.start()
        try:
            assert await service.poll_once()
            full, filtered = service.agents
            await wait_until(lambda: full.passes == 1 and filtered.passes == 1)

            assert set(full.live.keys()) == {"alice", "bob"}
            assert set(filtered.live.keys()) == {"alice"}
            assert full.live["alice"].stream is not filtered.live["alice"].stream
        finally:
            await service.stop()

        assert twitch.closed

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_agents_alone(self, config, channel, clock):
        service = StreamService(config, adapter=channel, twitch=FakeTwitch(TwitchError("HTTP 503", status=503)),
                                clock=clock)
        await service.start()
        try:
            assert not await service.poll_once()
            assert all(agent.passes == 0 for agent in service.agents)
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_directory_loaded_on_start(self, sync_settings, channel, clock):
        channel.post("400000000000000005", "dir\n111 alice")
        config = StreamwatchConfig(
            agents=[FULL],
            sync=sync_settings,
            directory={"channel_id": "400000000000000005"},
        )
        service = StreamService(config, adapter=channel, twitch=FakeTwitch(), clock=clock)
        await service.start()
        try:
            assert service.directory.lookup("Alice") == "111"
            assert service.refresher is not None and service.refresher.is_running
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_run_stops_when_start_fails(self, sync_settings, channel, clock):
        channel.fail_lists = 1
        config = StreamwatchConfig(
            agents=[FULL],
            sync=sync_settings,
            directory={"channel_id": "400000000000000005"},
        )
        twitch = FakeTwitch()
        service = StreamService(config, adapter=channel, twitch=twitch, clock=clock)

        with pytest.raises(AdapterError):
            await service.run()

        assert twitch.closed
        assert not any(agent.is_running for agent in service.agents)
