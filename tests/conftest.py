"""
Pytest configuration and shared fixtures for streamwatch tests.
"""

import asyncio
import pytest
from pathlib import Path
from typing import AsyncGenerator, List

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from streamwatch.sync.agent import Agent
from streamwatch.utils.config import SyncConfig
from tests.fixtures.channel_fixtures import CHANNEL, FakeChannel, FakeClock


@pytest.fixture
def channel() -> FakeChannel:
    """In-memory message channel."""
    return FakeChannel()


@pytest.fixture
def clock() -> FakeClock:
    """Clock that only moves when advanced."""
    return FakeClock()


@pytest.fixture
def sync_settings() -> SyncConfig:
    """Sync settings with no rate limiting."""
    return SyncConfig(
        rate_limit_delay=0.0,
        icon_urls=["https://icons/other.png", "https://icons/matched.png", "https://icons/known.png"],
    )


@pytest.fixture
def agent(channel: FakeChannel, clock: FakeClock, sync_settings: SyncConfig) -> Agent:
    """Agent bound to CHANNEL; not started."""
    return Agent(channel, CHANNEL, filtered=False, settings=sync_settings, clock=clock)


@pytest.fixture
async def running_agent(agent: Agent) -> AsyncGenerator[Agent, None]:
    """Started agent, stopped on teardown."""
    await agent.start()
    yield agent
    await agent.stop()


@pytest.fixture
def sleeps(monkeypatch) -> List[float]:
    """Record every asyncio.sleep delay and yield to the loop instead of waiting."""
    recorded: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, result=None):
        recorded.append(delay)
        return await real_sleep(0, result)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded
