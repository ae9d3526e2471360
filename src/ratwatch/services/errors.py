"""Exceptions raised by the watch lifecycle services."""

from __future__ import annotations


class WatchError(RuntimeError):
    """Base exception for watch lifecycle failures.

    Every subclass carries a stable ``reason`` code that callers can surface
    without parsing the message.
    """

    reason = "watch_error"


class WatchNotFoundError(WatchError):
    """Raised when a watch id does not resolve to a stored watch."""

    reason = "watch_not_found"


class WatchValidationError(WatchError):
    """Raised synchronously when a request is rejected.

    Validation failures are never retried automatically.
    """

    reason = "validation_failed"


class DuplicateWatchError(WatchValidationError):
    """An active watch already exists for the same group, accused and deadline."""

    reason = "duplicate_watch"


class DeadlineError(WatchValidationError):
    """The deadline is in the past or beyond the group's advance limit."""

    reason = "invalid_deadline"


class MessageTooLongError(WatchValidationError):
    """The custom message is longer than the configured limit."""

    reason = "message_too_long"


class GroupDisabledError(WatchValidationError):
    """Watches are disabled for the group."""

    reason = "group_disabled"


class NotAccusedError(WatchValidationError):
    """Only the accused may clear a watch early."""

    reason = "not_accused"


class DuplicateVoteError(WatchValidationError):
    """The voter already has a vote recorded on this watch."""

    reason = "duplicate_vote"


class VotingClosedError(WatchValidationError):
    """The watch is not accepting votes."""

    reason = "voting_closed"


class InvariantViolationError(WatchError):
    """Raised when stored data contradicts a lifecycle invariant.

    Processing of the affected watch halts; the condition is logged as an
    error rather than skipped.
    """

    reason = "invariant_violation"


class LeaderboardNotPublicError(WatchError):
    """The group has not opened its leaderboard to the public."""

    reason = "leaderboard_not_public"
