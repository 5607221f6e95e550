"""Rate-limited message writes for one agent's channel."""

from typing import Sequence

from ..models.message import render, stub_content
from ..models.stream import Entry, Position, Stream, VisualState
from ..persistence.base import PersistenceAdapter, RateLimiter
from ..utils.errors import (
    AdapterError,
    AmbiguousCreateError,
    ErrorContext,
    ErrorRecovery,
    NotFoundError,
    StaleHandleError,
)


class MessageWriter:
    """
    Turns entry state changes into adapter calls.

    Edits are retried forever at a fixed delay unless the message is gone.
    A failed create is never retried, since the message may have been posted.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        channel_id: str,
        icons: Sequence[str],
        limiter: RateLimiter,
        retry_delay: float,
    ):
        self.adapter = adapter
        self.channel_id = channel_id
        self.icons = list(icons)
        self.limiter = limiter
        self.retry_delay = retry_delay
        self.creates = 0
        self.edits = 0

    async def create(self, stream: Stream) -> Position:
        try:
            async with self.limiter:
                position = await self.adapter.create(self.channel_id, stub_content(stream))
        except AdapterError as e:
            raise AmbiguousCreateError(
                f"create for {stream.key} failed: {e}",
                context=ErrorContext(component="writer", operation="create",
                                     metadata={"channel_id": self.channel_id, "user": stream.key}),
                cause=e,
            ) from e
        self.creates += 1
        return position

    async def edit(self, entry: Entry, state: VisualState) -> None:
        content = render(entry.stream, state, self.icons)

        async def attempt():
            async with self.limiter:
                await self.adapter.edit(self.channel_id, entry.position, content)

        try:
            await ErrorRecovery.retry_fixed(
                attempt,
                delay=self.retry_delay,
                retry_on=(AdapterError,),
                give_up_on=(NotFoundError,),
                operation=f"edit {self.channel_id}/{entry.position}",
            )
        except NotFoundError as e:
            raise StaleHandleError(
                f"message {entry.position} for {entry.stream.key} is gone",
                context=ErrorContext(component="writer", operation="edit",
                                     metadata={"channel_id": self.channel_id,
                                               "position": str(entry.position)}),
                cause=e,
            ) from e
        self.edits += 1
