"""
Stream records and the per-agent collections that track them.

A ``Stream`` is one live broadcast as last observed. An ``Entry`` ties a
stream to the channel message that represents it, and an ``EntryBook`` is
one of an agent's two collections (live or expiring), keyed by lowercase
user name.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from functools import total_ordering
from typing import Dict, Iterator, Optional, Union


class Tier(IntEnum):
    """Classification of a stream, fixed when the stream is first seen."""
    OTHER = 0
    MATCHED = 1  # tag or keyword match
    KNOWN = 2    # user listed in the directory


class VisualState(Enum):
    """Message state, persisted as the embed color."""
    LIVE = 0x00ff00
    EXPIRING = 0xff8000
    EXPIRED = 0xff0000

    @property
    def color(self) -> int:
        return self.value

    @classmethod
    def from_color(cls, color: Optional[int]) -> Optional["VisualState"]:
        for state in cls:
            if state.value == color:
                return state
        return None


@total_ordering
class Position:
    """
    Identifier of a channel message, ordered by creation time.

    Discord snowflakes grow with creation time, so they are compared as
    integers. Any other id is compared as a string.
    """

    __slots__ = ("raw", "_key")

    def __init__(self, raw: Union[str, int]):
        self.raw = str(raw)
        self._key = (0, int(self.raw), "") if self.raw.isdigit() else (1, 0, self.raw)

    def __eq__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return self._key < other._key

    def __hash__(self):
        return hash(self._key)

    def __str__(self):
        return self.raw

    def __repr__(self):
        return f"Position({self.raw!r})"


@dataclass
class Stream:
    """One live stream as last observed."""
    user: str
    url_user: str
    title: str
    started_at: datetime
    thumbnail: str = ""
    tier: Tier = Tier.OTHER
    elapsed: timedelta = field(default_factory=timedelta)

    @property
    def key(self) -> str:
        return self.user.lower()

    @property
    def url(self) -> str:
        return f"https://twitch.tv/{self.url_user}"

    @property
    def ended_at(self) -> datetime:
        return self.started_at + self.elapsed


@dataclass
class Entry:
    """A stream paired with the message that shows it."""
    stream: Stream
    position: Position


class EntryBook:
    """Entries keyed by user, with lookup of the oldest and newest message."""

    def __init__(self, entries: Optional[Dict[str, Entry]] = None):
        self._entries: Dict[str, Entry] = dict(entries or {})

    def __getitem__(self, key: str) -> Entry:
        return self._entries[key]

    def __setitem__(self, key: str, entry: Entry) -> None:
        self._entries[key] = entry

    def __delitem__(self, key: str) -> None:
        del self._entries[key]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self):
        return self._entries.keys()

    def items(self):
        return self._entries.items()

    def pop(self, key: str) -> Entry:
        return self._entries.pop(key)

    def oldest(self) -> str:
        """Key of the entry with the smallest position. The book must not be empty."""
        if not self._entries:
            raise LookupError("oldest() on an empty book")
        return min(self._entries, key=lambda k: self._entries[k].position)

    def newest(self) -> str:
        """Key of the entry with the greatest position. The book must not be empty."""
        if not self._entries:
            raise LookupError("newest() on an empty book")
        return max(self._entries, key=lambda k: self._entries[k].position)

    def positions(self):
        return [entry.position for entry in self._entries.values()]


Snapshot = Dict[str, Stream]


def subset(snapshot: Snapshot, min_tier: Tier = Tier.MATCHED) -> Snapshot:
    """Streams at or above ``min_tier``, for filtered channels."""
    return {key: stream for key, stream in snapshot.items() if stream.tier >= min_tier}


__all__ = [
    'Tier',
    'VisualState',
    'Position',
    'Stream',
    'Entry',
    'EntryBook',
    'Snapshot',
    'subset',
]
