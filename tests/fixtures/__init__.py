"""
Test fixtures for streamwatch.

Provides an in-memory message channel, a controllable clock, stream
builders and a fake HTTP session.
"""

from .channel_fixtures import (
    CHANNEL, FakeChannel, FakeClock, T0, check_ordering, helix_record, make_stream, wait_until,
)
from .http_fixtures import FakeResponse, FakeSession

__all__ = [
    "CHANNEL",
    "FakeChannel",
    "FakeClock",
    "T0",
    "make_stream",
    "helix_record",
    "wait_until",
    "check_ordering",
    "FakeResponse",
    "FakeSession",
]
