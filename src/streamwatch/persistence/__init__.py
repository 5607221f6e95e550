"""
Message channel access.

The agents only see ``PersistenceAdapter``; ``DiscordAdapter`` is the
production implementation.
"""

from .base import PersistenceAdapter, RateLimiter
from .discord import DiscordAdapter

__all__ = [
    'PersistenceAdapter',
    'RateLimiter',
    'DiscordAdapter',
]
