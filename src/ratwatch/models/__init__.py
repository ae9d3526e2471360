# src/ratwatch/models/__init__.py
"""SQLAlchemy models for the Rat Watch application."""

from .group_settings import GroupSettings
from .outcome import OutcomeRecord
from .watch import ACTIVE_STATES, TERMINAL_STATES, Watch, WatchState, WatchVote

__all__ = [
    "GroupSettings",
    "OutcomeRecord",
    "Watch", "WatchState", "WatchVote",
    "ACTIVE_STATES", "TERMINAL_STATES",
]
