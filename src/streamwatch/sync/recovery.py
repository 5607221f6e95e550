"""Rebuilding an agent's books from the channel's message history."""

from typing import Sequence, Tuple

from ..models.message import PersistedMessage, decode, managed_state
from ..models.stream import Entry, EntryBook, VisualState
from ..persistence.base import PersistenceAdapter, RateLimiter
from ..utils.errors import AdapterError, ErrorRecovery, NotFoundError
from ..utils.logging import get_logger


logger = get_logger("streamwatch.recovery")


def classify(messages: Sequence[PersistedMessage], icons: Sequence[str]) -> Tuple[EntryBook, EntryBook]:
    """
    Sort managed messages into live and expiring books.

    Messages that are not ours (no single embed, or a color other than live
    or expiring) are skipped. If a user appears twice, the newer message
    wins.

    Raises:
        MalformedMessageError: a live or expiring message cannot be decoded
    """
    live, expiring = EntryBook(), EntryBook()
    for message in messages:
        state = managed_state(message)
        if state is VisualState.LIVE:
            book = live
        elif state is VisualState.EXPIRING:
            book = expiring
        else:
            continue
        stream = decode(message, icons)
        current = book[stream.key] if stream.key in book else None
        if current is not None and current.position > message.position:
            logger.warning("duplicate_message_skipped", user=stream.key, position=str(message.position))
            continue
        book[stream.key] = Entry(stream, message.position)
    return live, expiring


async def recover(
    adapter: PersistenceAdapter,
    channel_id: str,
    icons: Sequence[str],
    limiter: RateLimiter,
    limit: int = 100,
    retry_delay: float = 1.0,
) -> Tuple[EntryBook, EntryBook]:
    """
    Load the newest ``limit`` messages and rebuild both books.

    Transient listing failures are retried at ``retry_delay``. A missing
    channel or an undecodable managed message is fatal.
    """
    async def attempt():
        async with limiter:
            return await adapter.list_recent(channel_id, limit)

    messages = await ErrorRecovery.retry_fixed(
        attempt,
        delay=retry_delay,
        retry_on=(AdapterError,),
        give_up_on=(NotFoundError,),
        operation=f"list {channel_id}",
    )
    return classify(messages, icons)
