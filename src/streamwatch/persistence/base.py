"""Message channel interface consumed by the agents."""

from abc import ABC, abstractmethod
from typing import List, Optional
import asyncio

from ..models.message import MessageContent, PersistedMessage
from ..models.stream import Position


class PersistenceAdapter(ABC):
    """
    Create, edit and list messages in a channel.

    Implementations raise ``NotFoundError`` when the channel or message does
    not exist and ``AdapterError`` for every other failure.
    """

    @abstractmethod
    async def create(self, channel_id: str, content: MessageContent) -> Position:
        """Post a message and return its position."""
        pass

    @abstractmethod
    async def edit(self, channel_id: str, position: Position, content: MessageContent) -> None:
        """Replace the content of an existing message."""
        pass

    @abstractmethod
    async def list_recent(self, channel_id: str, limit: int) -> List[PersistedMessage]:
        """Most recent messages, newest first."""
        pass

    async def close(self) -> None:
        """Release connections."""
        pass


class RateLimiter:
    """Enforces a fixed minimum delay between consecutive calls."""

    def __init__(self, delay: float):
        self.delay = delay
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None

    async def __aenter__(self):
        await self._lock.acquire()
        if self._last_call is not None and self.delay > 0:
            wait = self._last_call + self.delay - asyncio.get_running_loop().time()
            if wait > 0:
                await asyncio.sleep(wait)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._last_call = asyncio.get_running_loop().time()
        self._lock.release()
        return False
