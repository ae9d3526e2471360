"""Lifecycle services for watches.

Every state change in this module is a conditional transition on the
store. A transition whose source state no longer matches is a *stale
transition*: another path (scheduler, early clear, window close) already
moved the watch. Stale transitions return False and are logged; they are
never raised to the caller.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ratwatch.core.settings import settings
from ratwatch.db.time import ensure_utc, utcnow
from ratwatch.models import OutcomeRecord, Watch, WatchState
from ratwatch.repositories.watch_repo import WatchRepository
from ratwatch.schemas.watch import WatchCreate
from ratwatch.services.errors import (
    DeadlineError,
    DuplicateWatchError,
    GroupDisabledError,
    InvariantViolationError,
    MessageTooLongError,
    NotAccusedError,
    WatchNotFoundError,
)
from ratwatch.services.group_settings import GroupSettingsService
from ratwatch.services.notifications import WatchNotifier, build_event, get_notifier
from ratwatch.services.verdict import Tally, decide_verdict

logger = logging.getLogger(__name__)


def build_message_link(watch: Watch) -> str:
    """Return the back-link to the message that prompted ``watch``."""
    return settings.message_link_template.format(
        group_id=watch.group_id,
        channel_id=watch.channel_id,
        message_id=watch.origin_message_id,
    )


class LifecycleService:
    """Owns every state transition of a watch."""

    def __init__(self, db: Session, notifier: WatchNotifier | None = None) -> None:
        self.db = db
        self.repo = WatchRepository(db)
        self.group_settings = GroupSettingsService(db)
        self.notifier = notifier or get_notifier()

    def get(self, watch_id: str) -> Watch:
        """Return a watch or raise :class:`WatchNotFoundError`."""
        watch = self.repo.get(watch_id)
        if watch is None:
            raise WatchNotFoundError(f"Watch {watch_id} not found")
        return watch

    def create(self, request: WatchCreate, now: datetime | None = None) -> Watch:
        """Create a pending watch.

        Raises:
            GroupDisabledError: watches are turned off for the group.
            DeadlineError: the deadline is not in the future or too far ahead.
            MessageTooLongError: the custom message exceeds the configured length.
            DuplicateWatchError: an active watch already exists for the same
                group, accused and deadline.
        """
        now = now or utcnow()
        deadline = ensure_utc(request.deadline)
        logger.info(
            "Creating watch for user %d in group %d, deadline %s",
            request.accused_user_id,
            request.group_id,
            deadline.isoformat(),
        )

        group = self.group_settings.get_or_create(request.group_id)
        if not group.is_enabled:
            raise GroupDisabledError("Watches are disabled for this group")

        limit = settings.custom_message_max_length
        if request.custom_message is not None and len(request.custom_message) > limit:
            raise MessageTooLongError(f"Custom messages are limited to {limit} characters")

        if deadline <= now:
            raise DeadlineError("The deadline must be in the future")
        if deadline > now + timedelta(hours=group.max_advance_hours):
            raise DeadlineError(
                f"Watches can only be scheduled up to {group.max_advance_hours} hours in advance"
            )

        duplicate = self.repo.find_active_duplicate(
            request.group_id,
            request.accused_user_id,
            deadline,
        )
        if duplicate is not None:
            logger.warning(
                "Duplicate watch %s for user %d at %s",
                duplicate.id,
                request.accused_user_id,
                deadline.isoformat(),
            )
            raise DuplicateWatchError("A watch already exists for this user at this time")

        watch = Watch(
            id=uuid.uuid4().hex,
            group_id=request.group_id,
            channel_id=request.channel_id,
            accused_user_id=request.accused_user_id,
            initiator_user_id=request.initiator_user_id,
            origin_message_id=request.origin_message_id,
            deadline=deadline,
            custom_message=request.custom_message,
            state=WatchState.PENDING.value,
            created_at=now,
            guilty_votes=0,
            not_guilty_votes=0,
        )
        self.repo.add(watch)
        try:
            self.db.commit()
        except IntegrityError as err:
            # A concurrent create won the partial unique index.
            self.db.rollback()
            logger.warning(
                "Duplicate watch for user %d at %s rejected by the database",
                request.accused_user_id,
                deadline.isoformat(),
            )
            raise DuplicateWatchError("A watch already exists for this user at this time") from err
        logger.info("Watch %s created for user %d", watch.id, watch.accused_user_id)

        self.notifier.publish(build_event("watch_created", watch, now))
        return watch

    def clear_early(self, watch_id: str, requester_id: int, now: datetime | None = None) -> bool:
        """Mark a pending watch as cleared by the accused.

        Returns False if the watch had already left ``pending``.

        Raises:
            WatchNotFoundError: unknown watch.
            NotAccusedError: the requester is not the accused.
        """
        now = now or utcnow()
        watch = self.get(watch_id)
        if watch.accused_user_id != requester_id:
            logger.warning(
                "User %d is not the accused on watch %s",
                requester_id,
                watch_id,
            )
            raise NotAccusedError("Only the accused can clear this watch")

        moved = self.repo.transition(
            watch_id,
            WatchState.PENDING,
            WatchState.CLEARED_EARLY,
            cleared_at=now,
        )
        self.db.commit()
        if not moved:
            logger.info("Stale clear on watch %s; already handled", watch_id)
            return False

        logger.info("Watch %s cleared early by user %d", watch_id, requester_id)
        return True

    def clear_all_for_user(self, group_id: int, user_id: int, now: datetime | None = None) -> int:
        """Clear every pending watch on ``user_id`` in a group; return how many moved."""
        now = now or utcnow()
        cleared = 0
        for watch in self.repo.pending_for_user(group_id, user_id):
            if self.clear_early(watch.id, user_id, now):
                cleared += 1
        logger.info("User %d cleared %d watches in group %d", user_id, cleared, group_id)
        return cleared

    def begin_voting(
        self,
        watch_id: str,
        now: datetime | None = None,
        window: timedelta | None = None,
    ) -> bool:
        """Open the voting window on a pending watch.

        The window end is fixed here and never moves. Returns False if the
        watch had already left ``pending``.
        """
        now = now or utcnow()
        if window is None:
            watch = self.get(watch_id)
            minutes = self.group_settings.voting_duration_minutes(watch.group_id)
            window = timedelta(minutes=minutes)

        moved = self.repo.transition(
            watch_id,
            WatchState.PENDING,
            WatchState.VOTING,
            voting_started_at=now,
            voting_closes_at=now + window,
        )
        self.db.commit()
        if not moved:
            logger.debug("Stale begin_voting on watch %s", watch_id)
            return False

        logger.info("Voting started for watch %s, closes at %s", watch_id, (now + window).isoformat())
        return True

    def close_voting(
        self,
        watch_id: str,
        tally: Tally,
        now: datetime | None = None,
    ) -> WatchState | None:
        """Commit the verdict for a voting watch.

        The state change and, for a guilty verdict, the outcome record are
        written in one transaction. Returns the verdict, or None when the
        window was already closed by another path.

        Raises:
            InvariantViolationError: an outcome record already exists for a
                watch that was still voting.
        """
        now = now or utcnow()
        verdict = decide_verdict(tally)
        moved = self.repo.transition(
            watch_id,
            WatchState.VOTING,
            verdict,
            voting_ended_at=now,
            guilty_votes=tally.guilty,
            not_guilty_votes=tally.not_guilty,
        )
        if not moved:
            self.db.rollback()
            logger.debug("Stale close_voting on watch %s", watch_id)
            return None

        if self.repo.outcome_for_watch(watch_id) is not None:
            self.db.rollback()
            raise InvariantViolationError(
                f"Watch {watch_id} already has an outcome record before closing"
            )

        if verdict is WatchState.GUILTY:
            watch = self.get(watch_id)
            record = OutcomeRecord(
                id=uuid.uuid4().hex,
                watch_id=watch_id,
                group_id=watch.group_id,
                user_id=watch.accused_user_id,
                guilty_votes=tally.guilty,
                not_guilty_votes=tally.not_guilty,
                recorded_at=now,
                origin_message_link=build_message_link(watch),
            )
            try:
                self.repo.add_outcome(record)
            except IntegrityError as err:
                self.db.rollback()
                raise InvariantViolationError(
                    f"Outcome record for watch {watch_id} already exists"
                ) from err
            logger.info(
                "Created outcome record %s for user %d in group %d",
                record.id,
                record.user_id,
                record.group_id,
            )

        self.db.commit()
        logger.info(
            "Watch %s closed with verdict %s (%d guilty, %d not guilty)",
            watch_id,
            verdict.value,
            tally.guilty,
            tally.not_guilty,
        )
        return verdict

    def cancel(self, watch_id: str, reason: str | None = None, now: datetime | None = None) -> bool:
        """Administratively cancel a pending watch.

        Returns False once voting has begun or the watch is otherwise closed.
        """
        self.get(watch_id)
        logger.info("Cancelling watch %s, reason: %s", watch_id, reason)
        moved = self.repo.transition(
            watch_id,
            WatchState.PENDING,
            WatchState.CANCELLED,
            cancel_reason=reason,
        )
        self.db.commit()
        if not moved:
            logger.info("Cannot cancel watch %s; it is no longer pending", watch_id)
            return False
        logger.info("Watch %s cancelled", watch_id)
        return True

    def expire(self, watch_id: str, now: datetime | None = None) -> bool:
        """Expire a pending watch whose deadline was missed beyond the grace period."""
        moved = self.repo.transition(watch_id, WatchState.PENDING, WatchState.EXPIRED)
        self.db.commit()
        if not moved:
            logger.debug("Stale expire on watch %s", watch_id)
            return False
        logger.info("Watch %s expired without a vote", watch_id)
        return True
