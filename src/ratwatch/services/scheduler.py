"""Deadline scheduler for pending watches.

Every cycle the scheduler looks for pending watches whose deadline has
passed. A deadline inside the grace period opens voting; anything older is
expired. It also sweeps voting windows whose timer never fired, for example
after a restart. All state changes are conditional transitions, so a
watch handled concurrently by an early clear or a window timer is simply
skipped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from ratwatch.core.settings import settings
from ratwatch.db.session import SessionLocal
from ratwatch.db.time import ensure_utc, utcnow
from ratwatch.models import WatchState
from ratwatch.repositories.watch_repo import WatchRepository
from ratwatch.services.errors import InvariantViolationError
from ratwatch.services.lifecycle import LifecycleService
from ratwatch.services.notifications import WatchNotifier, build_event, get_notifier
from ratwatch.services.voting import VotingService, VotingWindowTimers

logger = logging.getLogger(__name__)

UnitOutcome = Literal["started", "expired", "closed", "skipped", "failed"]


@dataclass
class TickReport:
    """Counts of what one scheduler cycle did."""

    started: int = 0
    expired: int = 0
    closed: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: UnitOutcome) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    @property
    def total(self) -> int:
        return self.started + self.expired + self.closed + self.skipped + self.failed


class WatchScheduler:
    """Fires deadline checks and closes overdue voting windows."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        notifier: WatchNotifier | None = None,
        timers: VotingWindowTimers | None = None,
        grace: timedelta | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            session_factory: Callable returning a new database session.
            notifier: Event sink for "voting started" and "voting closed".
            timers: Window timers; one sharing ``session_factory`` is created if omitted.
            grace: How late a deadline may fire before the watch is expired.
        """
        self._session_factory = session_factory
        self.notifier = notifier or get_notifier()
        if timers is None:
            timers = VotingWindowTimers(session_factory, self.notifier)
        self.timers = timers
        self.grace = grace if grace is not None else timedelta(seconds=settings.deadline_grace_seconds)
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    # Synchronous cycle

    def tick(self, now: datetime | None = None) -> TickReport:
        """Run one full cycle in a single session and report what happened."""
        now = now or utcnow()
        report = TickReport()
        with self._session_factory() as db:
            repo = WatchRepository(db)
            due_ids = [watch.id for watch in repo.due_pending(now)]
            for watch_id in due_ids:
                report.record(self._process_due(db, watch_id, now))

            elapsed_ids = [watch.id for watch in repo.elapsed_voting(now)]
            for watch_id in elapsed_ids:
                report.record(self._close_elapsed(db, watch_id, now))

        self._log_report(report)
        return report

    # Asynchronous cycle

    async def run_cycle(self, now: datetime | None = None) -> TickReport:
        """Run one cycle with each watch handled in its own worker thread.

        Concurrency is capped at ``MAX_CONCURRENT_EXECUTIONS`` and each watch
        gets ``EXECUTION_TIMEOUT_SECONDS`` before it is counted as failed.
        """
        now = now or utcnow()
        due_ids, elapsed_ids = await asyncio.to_thread(self._collect, now)
        report = TickReport()
        semaphore = asyncio.Semaphore(max(1, settings.max_concurrent_executions))
        timeout = settings.execution_timeout_seconds

        async def run_one(
            unit: Callable[[Session, str, datetime], UnitOutcome],
            watch_id: str,
        ) -> None:
            async with semaphore:
                try:
                    outcome = await asyncio.wait_for(
                        asyncio.to_thread(self._in_session, unit, watch_id, now),
                        timeout=timeout,
                    )
                except TimeoutError:
                    logger.warning("Processing watch %s timed out after %.1fs", watch_id, timeout)
                    outcome = "failed"
                report.record(outcome)

        await asyncio.gather(*(run_one(self._process_due, watch_id) for watch_id in due_ids))
        await asyncio.gather(*(run_one(self._close_elapsed, watch_id) for watch_id in elapsed_ids))
        self._log_report(report)
        return report

    def _collect(self, now: datetime) -> tuple[list[str], list[str]]:
        with self._session_factory() as db:
            repo = WatchRepository(db)
            due_ids = [watch.id for watch in repo.due_pending(now)]
            elapsed_ids = [watch.id for watch in repo.elapsed_voting(now)]
        return due_ids, elapsed_ids

    def _in_session(
        self,
        unit: Callable[[Session, str, datetime], UnitOutcome],
        watch_id: str,
        now: datetime,
    ) -> UnitOutcome:
        with self._session_factory() as db:
            return unit(db, watch_id, now)

    # Per-watch units

    def _process_due(self, db: Session, watch_id: str, now: datetime) -> UnitOutcome:
        """Open voting on a due watch, or expire it when the deadline is too old."""
        lifecycle = LifecycleService(db, self.notifier)
        watch = lifecycle.repo.get(watch_id)
        if watch is None or watch.state != WatchState.PENDING.value:
            logger.debug("Watch %s is no longer pending; skipping", watch_id)
            return "skipped"

        lateness = now - ensure_utc(watch.deadline)
        try:
            if lateness > self.grace:
                logger.info(
                    "Watch %s missed its deadline by %s; expiring",
                    watch_id,
                    lateness,
                )
                return "expired" if lifecycle.expire(watch_id, now) else "skipped"

            if not lifecycle.begin_voting(watch_id, now):
                return "skipped"
        except InvariantViolationError:
            db.rollback()
            logger.error("Invariant breached on watch %s", watch_id, exc_info=True)
            return "failed"

        started = lifecycle.repo.get(watch_id)
        if started is not None:
            self.notifier.publish(build_event("voting_started", started, now))
            if started.voting_closes_at is not None:
                self.timers.schedule(watch_id, started.voting_closes_at)
        return "started"

    def _close_elapsed(self, db: Session, watch_id: str, now: datetime) -> UnitOutcome:
        """Close a voting window whose end has passed."""
        try:
            verdict = VotingService(db, self.notifier).close_window(watch_id, now)
        except InvariantViolationError:
            db.rollback()
            logger.error("Invariant breached while closing watch %s", watch_id, exc_info=True)
            return "failed"
        if verdict is None:
            return "skipped"
        self.timers.cancel(watch_id)
        return "closed"

    def rearm_open_windows(self) -> int:
        """Schedule timers for every window still open, e.g. after a restart."""
        armed = 0
        with self._session_factory() as db:
            for watch in WatchRepository(db).open_voting():
                if watch.voting_closes_at is not None and self.timers.schedule(
                    watch.id, watch.voting_closes_at
                ):
                    armed += 1
        if armed:
            logger.info("Re-armed %d voting window timers", armed)
        return armed

    @staticmethod
    def _log_report(report: TickReport) -> None:
        if report.total:
            logger.info(
                "Scheduler cycle: %d started, %d expired, %d closed, %d skipped, %d failed",
                report.started,
                report.expired,
                report.closed,
                report.skipped,
                report.failed,
            )

    # Background loop

    async def start(self) -> None:
        """Start the background scheduling loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self.timers.bind(asyncio.get_running_loop())
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background loop and drop pending window timers."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None
        self.timers.unbind()
        await self.timers.drain()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        interval = max(0.1, float(settings.scheduler_interval_seconds))
        backoff = min(interval * 4, 30.0)

        if await self._wait(max(0.0, float(settings.scheduler_startup_delay_seconds))):
            return

        try:
            await asyncio.to_thread(self.rearm_open_windows)
        except (OperationalError, DBAPIError, OSError) as e:
            logger.warning("WatchScheduler could not re-arm window timers: %s", e)

        while not self._stopping.is_set():
            try:
                await self.run_cycle()
            except (OperationalError, DBAPIError, OSError) as e:
                logger.warning("WatchScheduler encountered a store error: %s", e)
                if await self._wait(backoff):
                    return
                continue

            if await self._wait(interval):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if a stop was requested."""
        if seconds <= 0:
            return self._stopping.is_set()
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True


_scheduler: WatchScheduler | None = None


def get_scheduler() -> WatchScheduler:
    """Return the process-wide scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = WatchScheduler()
    return _scheduler
