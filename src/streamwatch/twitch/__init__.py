"""Twitch Helix snapshot producer."""

from .client import StreamFilter, TwitchClient, stream_from_helix

__all__ = [
    'StreamFilter',
    'TwitchClient',
    'stream_from_helix',
]
