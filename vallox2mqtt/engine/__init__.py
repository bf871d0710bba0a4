"""Event reconciliation and speed debounce engine."""

from .cache import CacheEntry, RegisterCache
from .debouncer import SpeedDebouncer, WriteAction, WriteDecision
from .dispatcher import Dispatcher
from .policy import Decision, classify
from .refresh import due_registers

__all__ = [
    "CacheEntry",
    "RegisterCache",
    "SpeedDebouncer",
    "WriteAction",
    "WriteDecision",
    "Dispatcher",
    "Decision",
    "classify",
    "due_registers",
]
