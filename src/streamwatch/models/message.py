"""
Rendering streams into channel messages and decoding them back.

The embed is the only persisted copy of a stream's state: the color says
which collection it belongs to, and the remaining fields carry enough to
rebuild the ``Stream`` after a restart.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from .stream import Position, Stream, Tier, VisualState
from ..utils.errors import MalformedMessageError


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


@dataclass
class MessageContent:
    """Payload for a create or edit call."""
    content: str = ""
    embeds: List[Dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {"content": self.content, "embeds": self.embeds}


@dataclass
class PersistedMessage:
    """A message as listed back from the channel."""
    position: Position
    content: str = ""
    embeds: List[Dict[str, Any]] = field(default_factory=list)


def format_duration(elapsed: timedelta) -> str:
    """Whole minutes as ``1h5m`` / ``42m``; empty under one minute."""
    minutes = int(elapsed.total_seconds() // 60)
    if minutes <= 0:
        return ""
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes}m"
    return f"{minutes}m"


def parse_duration(text: str) -> timedelta:
    """Parse ``1h5m``-style durations (also accepts ``s`` and ``ms`` parts)."""
    text = text.strip()
    if not text:
        return timedelta()
    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {text!r}")
    return timedelta(seconds=seconds)


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def stub_content(stream: Stream) -> MessageContent:
    """Creation payload; doubles as the push notification text."""
    return MessageContent(content=f"{stream.user}: {stream.title}")


def render(stream: Stream, state: VisualState, icons: Sequence[str]) -> MessageContent:
    """Full message for ``stream`` shown in ``state``."""
    live = state is VisualState.LIVE
    author: Dict[str, Any] = {
        "name": f"{stream.user} {'is live' if live else 'was live'}",
        "url": stream.url,
    }
    if icons[stream.tier]:
        author["icon_url"] = icons[stream.tier]

    embed: Dict[str, Any] = {
        "author": author,
        "description": f"[{stream.title}]({stream.url})",
        "color": state.color,
        "timestamp": stream.started_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT),
    }
    if live and stream.thumbnail:
        embed["thumbnail"] = {"url": stream.thumbnail}
    footer = "" if live else format_duration(stream.elapsed)
    if footer:
        embed["footer"] = {"text": footer}

    return MessageContent(content="", embeds=[embed])


def managed_state(message: PersistedMessage) -> Optional[VisualState]:
    """State of a message this service manages, or None for anything else."""
    if len(message.embeds) != 1:
        return None
    color = message.embeds[0].get("color")
    return VisualState.from_color(color)


def decode(message: PersistedMessage, icons: Sequence[str]) -> Stream:
    """
    Rebuild a ``Stream`` from a rendered message.

    Raises:
        MalformedMessageError: if required fields are missing or the
            timestamp or duration cannot be parsed
    """
    def malformed(reason: str) -> MalformedMessageError:
        return MalformedMessageError(
            f"message {message.position}: {reason}", message_id=str(message.position)
        )

    if len(message.embeds) != 1:
        raise malformed(f"expected 1 embed, got {len(message.embeds)}")
    embed = message.embeds[0]

    author = embed.get("author") or {}
    name = (author.get("name") or "").strip()
    url = author.get("url") or ""
    if not name or not url:
        raise malformed("missing author")
    user = name.split(" ", 1)[0]
    url_user = url.rstrip("/").rsplit("/", 1)[-1]

    description = embed.get("description") or ""
    end = description.rfind("](")
    if not description.startswith("[") or end < 1:
        raise malformed("description is not a link")
    title = description[1:end]

    try:
        started_at = parse_timestamp(embed.get("timestamp") or "")
    except ValueError as e:
        raise malformed(f"bad timestamp: {e}") from e

    footer = (embed.get("footer") or {}).get("text") or ""
    try:
        elapsed = parse_duration(footer)
    except ValueError as e:
        raise malformed(f"bad duration: {e}") from e

    thumbnail = (embed.get("thumbnail") or {}).get("url") or ""

    icon = author.get("icon_url") or ""
    tier = Tier.OTHER
    for candidate in Tier:
        if icons[candidate] == icon:
            tier = candidate
            break

    return Stream(
        user=user,
        url_user=url_user,
        title=title,
        started_at=started_at,
        thumbnail=thumbnail,
        tier=tier,
        elapsed=elapsed,
    )


__all__ = [
    'MessageContent',
    'PersistedMessage',
    'format_duration',
    'parse_duration',
    'parse_timestamp',
    'stub_content',
    'render',
    'managed_state',
    'decode',
]
