"""Voting on watches whose deadline fired without a check-in.

Votes are insert-or-reject: a voter gets exactly one vote per watch and it
can never be changed. A window is closed either by its timer or by the
scheduler's late sweep; both go through :meth:`VotingService.close_window`
and only one of them wins the state transition.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ratwatch.db.session import SessionLocal
from ratwatch.db.time import ensure_utc, utcnow
from ratwatch.models import WatchState, WatchVote
from ratwatch.repositories.watch_repo import WatchRepository
from ratwatch.services.errors import (
    DuplicateVoteError,
    InvariantViolationError,
    VotingClosedError,
    WatchNotFoundError,
)
from ratwatch.services.lifecycle import LifecycleService
from ratwatch.services.notifications import WatchNotifier, build_event, get_notifier
from ratwatch.services.verdict import Tally, decide_verdict

logger = logging.getLogger(__name__)

__all__ = ["VotingService", "VotingWindowTimers", "compute_verdict"]

_DECIDED_STATES = (WatchState.GUILTY.value, WatchState.NOT_GUILTY.value)


def compute_verdict(guilty: int, not_guilty: int, tie_verdict: str | None = None) -> WatchState:
    """Return the verdict for raw vote counts."""
    return decide_verdict(Tally(guilty=guilty, not_guilty=not_guilty), tie_verdict)


class VotingService:
    """Casts votes, reports tallies and closes voting windows."""

    def __init__(
        self,
        db: Session,
        notifier: WatchNotifier | None = None,
        lifecycle: LifecycleService | None = None,
    ) -> None:
        self.db = db
        self.repo = WatchRepository(db)
        self.notifier = notifier or get_notifier()
        self.lifecycle = lifecycle or LifecycleService(db, self.notifier)

    def cast_vote(
        self,
        watch_id: str,
        voter_id: int,
        is_guilty: bool,
        now: datetime | None = None,
    ) -> WatchVote:
        """Record a vote on a watch that is currently voting.

        Raises:
            WatchNotFoundError: unknown watch.
            VotingClosedError: the watch is not voting or its window has ended.
            DuplicateVoteError: the voter already voted on this watch.
        """
        now = now or utcnow()
        watch = self.repo.get(watch_id)
        if watch is None:
            raise WatchNotFoundError(f"Watch {watch_id} not found")
        if watch.state != WatchState.VOTING.value or watch.voting_closes_at is None:
            raise VotingClosedError("Voting is not open for this watch")
        if now >= ensure_utc(watch.voting_closes_at):
            raise VotingClosedError("The voting window has ended")

        if self.repo.get_vote(watch_id, voter_id) is not None:
            logger.info("User %d already voted on watch %s", voter_id, watch_id)
            raise DuplicateVoteError("You have already voted on this watch")

        try:
            inserted = self.repo.insert_vote(watch_id, voter_id, is_guilty, now)
        except IntegrityError as err:
            self.db.rollback()
            logger.info("Concurrent duplicate vote by user %d on watch %s", voter_id, watch_id)
            raise DuplicateVoteError("You have already voted on this watch") from err

        if not inserted:
            # The window closed between the read and the insert.
            self.db.rollback()
            raise VotingClosedError("The voting window has ended")

        self.db.commit()
        logger.info(
            "User %d voted %s on watch %s",
            voter_id,
            "guilty" if is_guilty else "not guilty",
            watch_id,
        )
        vote = self.repo.get_vote(watch_id, voter_id)
        if vote is None:
            raise InvariantViolationError(f"Vote by {voter_id} on watch {watch_id} vanished after commit")
        return vote

    def get_tally(self, watch_id: str) -> Tally:
        """Return the tally for a watch.

        Decided watches report the stored final tally. Voting watches report
        the live count of votes cast inside the window.
        """
        watch = self.repo.get(watch_id)
        if watch is None:
            raise WatchNotFoundError(f"Watch {watch_id} not found")
        if watch.state in _DECIDED_STATES:
            return Tally(guilty=watch.guilty_votes, not_guilty=watch.not_guilty_votes)
        guilty, not_guilty = self.repo.tally(watch_id, before=watch.voting_closes_at)
        return Tally(guilty=guilty, not_guilty=not_guilty)

    def close_window(self, watch_id: str, now: datetime | None = None) -> WatchState | None:
        """Close the voting window of a watch and commit its verdict.

        Returns the verdict, or None when the window is not ready to close or
        was already closed by another path.
        """
        now = now or utcnow()
        watch = self.repo.get(watch_id)
        if watch is None:
            raise WatchNotFoundError(f"Watch {watch_id} not found")
        if watch.state != WatchState.VOTING.value:
            logger.debug("Watch %s is %s; nothing to close", watch_id, watch.state)
            return None
        if watch.voting_closes_at is None:
            raise InvariantViolationError(f"Watch {watch_id} is voting without a window end")

        closes_at = ensure_utc(watch.voting_closes_at)
        if now < closes_at:
            logger.debug("Window for watch %s is open until %s", watch_id, closes_at.isoformat())
            return None

        guilty, not_guilty = self.repo.tally(watch_id, before=closes_at)
        verdict = self.lifecycle.close_voting(watch_id, Tally(guilty, not_guilty), now)
        if verdict is None:
            return None

        closed = self.repo.get(watch_id)
        if closed is not None:
            self.notifier.publish(build_event("voting_closed", closed, now))
        return verdict


class VotingWindowTimers:
    """One-shot wake-ups that close voting windows on time.

    Timers live on the event loop passed to :meth:`bind`. :meth:`schedule`
    and :meth:`cancel` are safe to call from worker threads; the closing work
    itself runs in a thread so the loop never blocks on the store. Without a
    bound loop nothing is scheduled and the scheduler's sweep closes the
    window instead.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        notifier: WatchNotifier | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handles: dict[str, tuple[asyncio.TimerHandle, datetime]] = {}
        self._tasks: set[asyncio.Task[WatchState | None]] = set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the timers to ``loop``."""
        self._loop = loop

    def unbind(self) -> None:
        """Detach from the loop. Call from the loop thread."""
        self.cancel_all()
        self._loop = None

    @property
    def bound(self) -> bool:
        return self._loop is not None and not self._loop.is_closed()

    def __contains__(self, watch_id: object) -> bool:
        return watch_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def schedule(self, watch_id: str, closes_at: datetime) -> bool:
        """Arrange for ``close_window`` to run when the window ends."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound; window of watch %s left to the sweep", watch_id)
            return False
        loop.call_soon_threadsafe(self._arm, watch_id, ensure_utc(closes_at))
        return True

    def cancel(self, watch_id: str) -> None:
        """Drop the timer for a watch if one is armed."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._disarm, watch_id)

    def cancel_all(self) -> None:
        """Drop every armed timer. Call from the loop thread."""
        for handle, _ in self._handles.values():
            handle.cancel()
        self._handles.clear()

    async def drain(self) -> None:
        """Wait for in-flight window closures to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _arm(self, watch_id: str, closes_at: datetime) -> None:
        if self._loop is None:
            return
        self._disarm(watch_id)
        delay = max(0.0, (closes_at - utcnow()).total_seconds())
        handle = self._loop.call_later(delay, self._fire, watch_id)
        self._handles[watch_id] = (handle, closes_at)
        logger.debug("Armed window timer for watch %s in %.2fs", watch_id, delay)

    def _disarm(self, watch_id: str) -> None:
        entry = self._handles.pop(watch_id, None)
        if entry is not None:
            entry[0].cancel()

    def _fire(self, watch_id: str) -> None:
        entry = self._handles.pop(watch_id, None)
        if entry is None or self._loop is None:
            return
        closes_at = entry[1]
        if utcnow() < closes_at:
            # Loop clocks may wake slightly early.
            self._arm(watch_id, closes_at)
            return
        task = self._loop.create_task(asyncio.to_thread(self._close, watch_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _close(self, watch_id: str) -> WatchState | None:
        with self._session_factory() as db:
            try:
                return VotingService(db, self._notifier).close_window(watch_id)
            except InvariantViolationError:
                logger.error("Invariant breached while closing watch %s", watch_id, exc_info=True)
            except WatchNotFoundError:
                logger.warning("Window timer fired for unknown watch %s", watch_id)
            except SQLAlchemyError as e:
                logger.warning("Could not close watch %s; leaving it to the sweep: %s", watch_id, e)
        return None
