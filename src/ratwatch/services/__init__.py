"""Business logic services for the Rat Watch engine."""

from .errors import (
    DeadlineError,
    DuplicateVoteError,
    DuplicateWatchError,
    GroupDisabledError,
    InvariantViolationError,
    NotAccusedError,
    VotingClosedError,
    WatchError,
    WatchNotFoundError,
    WatchValidationError,
)
from .group_settings import GroupSettingsService
from .lifecycle import LifecycleService
from .notifications import WatchNotifier, get_notifier
from .scheduler import TickReport, WatchScheduler, get_scheduler
from .stats import StatsService
from .verdict import Tally, decide_verdict
from .voting import VotingService, VotingWindowTimers, compute_verdict

__all__ = [
    "DeadlineError",
    "DuplicateVoteError",
    "DuplicateWatchError",
    "GroupDisabledError",
    "GroupSettingsService",
    "InvariantViolationError",
    "LifecycleService",
    "NotAccusedError",
    "StatsService",
    "Tally",
    "TickReport",
    "VotingClosedError",
    "VotingService",
    "VotingWindowTimers",
    "WatchError",
    "WatchNotFoundError",
    "WatchNotifier",
    "WatchScheduler",
    "WatchValidationError",
    "compute_verdict",
    "decide_verdict",
    "get_notifier",
    "get_scheduler",
]
