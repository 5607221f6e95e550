"""
Channel synchronization components.

This package provides the per-channel agent, the reconciliation pass with
its expiry sweep, and recovery of agent state from channel history.
"""

from .agent import Agent
from .reconciler import Action, Command, PassResult, Reconciler, plan
from .recovery import classify, recover
from .writer import MessageWriter

__all__ = [
    'Agent',
    'Action',
    'Command',
    'PassResult',
    'Reconciler',
    'plan',
    'classify',
    'recover',
    'MessageWriter',
]
