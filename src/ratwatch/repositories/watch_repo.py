"""Data access helpers for watches, votes and outcome records.

The repository is the only code that issues writes against the ``watch``
table. State changes go through :meth:`WatchRepository.transition`, a
conditional ``UPDATE`` keyed on the current state, so concurrent callers
racing on the same watch resolve to exactly one winner.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, case, func, insert, literal, select, update
from sqlalchemy.orm import Session

from ratwatch.models import ACTIVE_STATES, TERMINAL_STATES, OutcomeRecord, Watch, WatchState, WatchVote

__all__ = ["WatchRepository", "WatchFilter"]


class WatchFilter:
    """Optional filters for listing a group's watches."""

    def __init__(
        self,
        *,
        states: Iterable[WatchState | str] | None = None,
        accused_user_id: int | None = None,
        initiator_user_id: int | None = None,
        created_after: datetime | None = None,
        created_before: datetime | None = None,
        keyword: str | None = None,
    ) -> None:
        self.states = [WatchState(state).value for state in states] if states else None
        self.accused_user_id = accused_user_id
        self.initiator_user_id = initiator_user_id
        self.created_after = created_after
        self.created_before = created_before
        self.keyword = keyword


class WatchRepository:
    """Thin wrapper around database access for watch entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, watch_id: str) -> Watch | None:
        """Return a watch by identifier, always re-read from the store."""
        return self.session.get(Watch, watch_id, populate_existing=True)

    def add(self, watch: Watch) -> Watch:
        """Stage a new watch and flush it so defaults are populated."""
        self.session.add(watch)
        self.session.flush()
        return watch

    def find_active_duplicate(
        self,
        group_id: int,
        accused_user_id: int,
        deadline: datetime,
    ) -> Watch | None:
        """Return an active watch on the same accused and deadline, if any."""
        return self.session.execute(
            select(Watch).where(
                Watch.group_id == group_id,
                Watch.accused_user_id == accused_user_id,
                Watch.deadline == deadline,
                Watch.state.in_(sorted(ACTIVE_STATES)),
            )
        ).scalars().first()

    def transition(
        self,
        watch_id: str,
        expected: WatchState,
        new_state: WatchState,
        **values: Any,
    ) -> bool:
        """Atomically move a watch from ``expected`` to ``new_state``.

        Additional column values are written in the same statement. Returns
        False when the watch is no longer in ``expected``.
        """
        result = self.session.execute(
            update(Watch)
            .where(Watch.id == watch_id, Watch.state == expected.value)
            .values(state=new_state.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def due_pending(self, now: datetime) -> Sequence[Watch]:
        """Return pending watches whose deadline has passed."""
        return self.session.execute(
            select(Watch)
            .where(Watch.state == WatchState.PENDING.value, Watch.deadline <= now)
            .order_by(Watch.deadline, Watch.id)
        ).scalars().all()

    def elapsed_voting(self, now: datetime) -> Sequence[Watch]:
        """Return voting watches whose window has ended."""
        return self.session.execute(
            select(Watch)
            .where(Watch.state == WatchState.VOTING.value, Watch.voting_closes_at <= now)
            .order_by(Watch.voting_closes_at, Watch.id)
        ).scalars().all()

    def open_voting(self) -> Sequence[Watch]:
        """Return every watch currently accepting votes."""
        return self.session.execute(
            select(Watch).where(Watch.state == WatchState.VOTING.value)
        ).scalars().all()

    def pending_for_user(self, group_id: int, accused_user_id: int) -> Sequence[Watch]:
        """Return a user's pending watches in a group, oldest deadline first."""
        return self.session.execute(
            select(Watch)
            .where(
                Watch.group_id == group_id,
                Watch.accused_user_id == accused_user_id,
                Watch.state == WatchState.PENDING.value,
            )
            .order_by(Watch.deadline)
        ).scalars().all()

    def has_active(self) -> bool:
        """Return True if any group has a pending or voting watch."""
        found = self.session.execute(
            select(Watch.id).where(Watch.state.in_(sorted(ACTIVE_STATES))).limit(1)
        ).first()
        return found is not None

    def list_for_group(
        self,
        group_id: int,
        *,
        page: int = 1,
        page_size: int = 20,
        filters: WatchFilter | None = None,
    ) -> tuple[list[Watch], int]:
        """Return one page of a group's watches (newest first) and the total count."""
        conditions = [Watch.group_id == group_id]
        if filters is not None:
            if filters.states:
                conditions.append(Watch.state.in_(filters.states))
            if filters.accused_user_id is not None:
                conditions.append(Watch.accused_user_id == filters.accused_user_id)
            if filters.initiator_user_id is not None:
                conditions.append(Watch.initiator_user_id == filters.initiator_user_id)
            if filters.created_after is not None:
                conditions.append(Watch.created_at >= filters.created_after)
            if filters.created_before is not None:
                conditions.append(Watch.created_at <= filters.created_before)
            if filters.keyword:
                conditions.append(Watch.custom_message.ilike(f"%{filters.keyword}%"))

        total = self.session.execute(
            select(func.count()).select_from(Watch).where(*conditions)
        ).scalar_one()
        page = max(page, 1)
        items = self.session.execute(
            select(Watch)
            .where(*conditions)
            .order_by(Watch.created_at.desc(), Watch.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(items), int(total)

    # Votes

    def insert_vote(
        self,
        watch_id: str,
        voter_user_id: int,
        is_guilty: bool,
        voted_at: datetime,
    ) -> bool:
        """Insert a vote only if the watch is voting with its window still open.

        Returns False when the guard rejects the insert. A second vote from the
        same voter violates the composite primary key and raises
        ``IntegrityError`` from the driver; callers map it to a rejection.
        """
        guarded = select(
            Watch.id,
            literal(voter_user_id, BigInteger),
            literal(is_guilty, Boolean),
            literal(voted_at, DateTime(timezone=True)),
        ).where(
            Watch.id == watch_id,
            Watch.state == WatchState.VOTING.value,
            Watch.voting_closes_at > voted_at,
        )
        result = self.session.execute(
            insert(WatchVote.__table__).from_select(
                ["watch_id", "voter_user_id", "is_guilty_vote", "voted_at"],
                guarded,
            )
        )
        return result.rowcount == 1

    def get_vote(self, watch_id: str, voter_user_id: int) -> WatchVote | None:
        """Return a voter's vote on a watch."""
        return self.session.get(WatchVote, (watch_id, voter_user_id))

    def tally(self, watch_id: str, before: datetime | None = None) -> tuple[int, int]:
        """Return ``(guilty, not_guilty)`` counts, optionally bounded by ``before``."""
        guilty = func.sum(case((WatchVote.is_guilty_vote.is_(True), 1), else_=0))
        stmt = select(func.count(), guilty).where(WatchVote.watch_id == watch_id)
        if before is not None:
            stmt = stmt.where(WatchVote.voted_at < before)
        total, guilty_count = self.session.execute(stmt).one()
        guilty_count = int(guilty_count or 0)
        return guilty_count, int(total) - guilty_count

    # Outcome records

    def add_outcome(self, record: OutcomeRecord) -> OutcomeRecord:
        """Stage an outcome record."""
        self.session.add(record)
        self.session.flush()
        return record

    def outcome_for_watch(self, watch_id: str) -> OutcomeRecord | None:
        """Return the outcome record produced by a watch, if any."""
        return self.session.execute(
            select(OutcomeRecord).where(OutcomeRecord.watch_id == watch_id)
        ).scalars().first()

    def outcomes_for_group(self, group_id: int) -> Sequence[OutcomeRecord]:
        """Return all outcome records in a group, oldest first."""
        return self.session.execute(
            select(OutcomeRecord)
            .where(OutcomeRecord.group_id == group_id)
            .order_by(OutcomeRecord.recorded_at, OutcomeRecord.id)
        ).scalars().all()

    def outcomes_for_user(
        self,
        group_id: int,
        user_id: int,
        limit: int | None = None,
    ) -> Sequence[OutcomeRecord]:
        """Return a user's outcome records, newest first."""
        stmt = (
            select(OutcomeRecord)
            .where(OutcomeRecord.group_id == group_id, OutcomeRecord.user_id == user_id)
            .order_by(OutcomeRecord.recorded_at.desc(), OutcomeRecord.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.execute(stmt).scalars().all()

    def count_outcomes_for_user(self, group_id: int, user_id: int) -> int:
        """Return how many guilty verdicts a user has in a group."""
        return int(
            self.session.execute(
                select(func.count())
                .select_from(OutcomeRecord)
                .where(OutcomeRecord.group_id == group_id, OutcomeRecord.user_id == user_id)
            ).scalar_one()
        )

    def terminal_watches(self, group_id: int, user_id: int | None = None) -> Sequence[Watch]:
        """Return closed watches in a group, in chronological order."""
        stmt = select(Watch).where(
            Watch.group_id == group_id,
            Watch.state.in_(sorted(TERMINAL_STATES)),
        )
        if user_id is not None:
            stmt = stmt.where(Watch.accused_user_id == user_id)
        return self.session.execute(
            stmt.order_by(Watch.created_at, Watch.id)
        ).scalars().all()
