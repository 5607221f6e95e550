"""
Reconciliation of an agent's messages against a new snapshot.

Message order in the channel is fixed by creation time, so streams are
never reordered by reposting. Instead every message of a live stream is
kept newer than every message of an ended one: when a stream moves
between the two books, its message is swapped with the extremal message
of the book it is leaving (retire) or joining (reactivate), and both
messages are re-rendered in place.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional

from ..models.stream import Entry, EntryBook, Snapshot, Stream, VisualState
from ..utils.logging import get_logger
from .writer import MessageWriter


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Action(Enum):
    ADD = "+"
    EDIT = "~"
    REMOVE = "-"


@dataclass
class Command:
    """One change to apply to the channel."""
    action: Action
    key: str
    stream: Optional[Stream] = None


@dataclass
class PassResult:
    """What one reconciliation pass did."""
    added: int = 0
    reactivated: int = 0
    edited: int = 0
    removed: int = 0
    expired: int = 0

    @property
    def changed(self) -> bool:
        return any((self.added, self.reactivated, self.edited, self.removed, self.expired))


def plan(live: EntryBook, snapshot: Snapshot) -> List[Command]:
    """Removals for streams that went offline, then edits and additions."""
    commands = [Command(Action.REMOVE, key) for key in live if key not in snapshot]
    for key, stream in snapshot.items():
        if key not in live:
            commands.append(Command(Action.ADD, key, stream))
        elif live[key].stream.title != stream.title:
            commands.append(Command(Action.EDIT, key, stream))
    return commands


class Reconciler:
    """Applies commands and expiries through a ``MessageWriter``."""

    def __init__(
        self,
        writer: MessageWriter,
        dwell: timedelta = timedelta(minutes=15),
        clock: Clock = utc_now,
        agent_id: int = 0,
    ):
        self.writer = writer
        self.dwell = dwell
        self.clock = clock
        self.logger = get_logger("streamwatch.reconciler").bind(agent_id=agent_id)

    async def reconcile(self, live: EntryBook, expiring: EntryBook, snapshot: Snapshot) -> PassResult:
        """
        Bring both books and the channel in line with ``snapshot``.

        Raises:
            ReloadRequired: the books no longer match the channel and must
                be reloaded; they are left partially updated
        """
        result = PassResult()
        await self.apply(live, expiring, plan(live, snapshot), result)
        result.expired = await self.sweep(expiring)
        return result

    async def apply(
        self,
        live: EntryBook,
        expiring: EntryBook,
        commands: List[Command],
        result: Optional[PassResult] = None,
    ) -> PassResult:
        result = result or PassResult()
        for cmd in commands:
            if cmd.action is Action.ADD:
                if cmd.key in expiring:
                    await self._reactivate(live, expiring, cmd.key, cmd.stream)
                    result.reactivated += 1
                else:
                    await self._add(live, cmd.key, cmd.stream)
                    result.added += 1
            elif cmd.action is Action.EDIT:
                await self._edit(live, cmd.key, cmd.stream)
                result.edited += 1
            else:
                await self._retire(live, expiring, cmd.key)
                result.removed += 1
        return result

    async def _add(self, live: EntryBook, key: str, stream: Stream) -> None:
        self.logger.info("stream_added", user=key)
        # Streams are copied so agents never share mutable state
        position = await self.writer.create(stream)
        live[key] = Entry(dataclasses.replace(stream), position)
        await self.writer.edit(live[key], VisualState.LIVE)

    async def _reactivate(self, live: EntryBook, expiring: EntryBook, key: str, stream: Stream) -> None:
        entry = expiring[key]
        newest_key = expiring.newest()
        self.logger.info("stream_reactivated", user=key, swap_with=newest_key)
        if newest_key != key:
            newest = expiring[newest_key]
            entry.position, newest.position = newest.position, entry.position
            await self.writer.edit(newest, VisualState.EXPIRING)
        live[key] = expiring.pop(key)
        entry.stream = dataclasses.replace(stream, tier=entry.stream.tier, elapsed=timedelta())
        await self.writer.edit(entry, VisualState.LIVE)

    async def _edit(self, live: EntryBook, key: str, stream: Stream) -> None:
        self.logger.info("stream_edited", user=key)
        entry = live[key]
        entry.stream.title = stream.title
        await self.writer.edit(entry, VisualState.LIVE)

    async def _retire(self, live: EntryBook, expiring: EntryBook, key: str) -> None:
        entry = live[key]
        oldest_key = live.oldest()
        self.logger.info("stream_removed", user=key, swap_with=oldest_key)
        if oldest_key != key:
            oldest = live[oldest_key]
            entry.position, oldest.position = oldest.position, entry.position
            await self.writer.edit(oldest, VisualState.LIVE)
        expiring[key] = live.pop(key)
        entry.stream.elapsed = self.clock() - entry.stream.started_at
        await self.writer.edit(entry, VisualState.EXPIRING)

    async def sweep(self, expiring: EntryBook) -> int:
        """Mark streams that ended more than the dwell time ago as expired."""
        now = self.clock()
        expired = [key for key, entry in expiring.items()
                   if now - entry.stream.ended_at > self.dwell]
        for key in expired:
            self.logger.info("stream_expired", user=key)
            entry = expiring.pop(key)
            await self.writer.edit(entry, VisualState.EXPIRED)
        return len(expired)
