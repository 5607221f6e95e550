"""
streamwatch - keeps Discord channels in sync with live Twitch streams.

This package provides:
- One reconciliation agent per destination channel
- Swap-based ordering that keeps live streams below ended ones
- Expiry of ended streams after a dwell time
- Full reload of agent state from channel history after failures
"""

__version__ = "0.1.0"

__all__ = ['__version__']
