"""
Data model for streamwatch: streams, message positions and message rendering.
"""

from .stream import Tier, VisualState, Position, Stream, Entry, EntryBook, Snapshot, subset
from .message import MessageContent, PersistedMessage, render, decode, stub_content, managed_state

__all__ = [
    'Tier',
    'VisualState',
    'Position',
    'Stream',
    'Entry',
    'EntryBook',
    'Snapshot',
    'subset',
    'MessageContent',
    'PersistedMessage',
    'render',
    'decode',
    'stub_content',
    'managed_state',
]
