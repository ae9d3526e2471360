# src/ratwatch/models/watch.py
"""Models capturing watches and the votes cast on them."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ratwatch.db.session import Base
from ratwatch.db.time import utcnow


class WatchState(str, Enum):
    """Lifecycle states of a watch."""

    PENDING = "pending"
    CLEARED_EARLY = "cleared_early"
    VOTING = "voting"
    GUILTY = "guilty"
    NOT_GUILTY = "not_guilty"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Plain string values: Enum members hash by name, so value lookups need strings.
ACTIVE_STATES = frozenset({WatchState.PENDING.value, WatchState.VOTING.value})
TERMINAL_STATES = frozenset(state.value for state in WatchState) - ACTIVE_STATES
ACTIVE_STATE_FILTER = "state IN ('pending', 'voting')"


class Watch(Base):
    """A single accusation with a deadline.

    Rows are never deleted; terminal states are kept for statistics. The
    ``state`` column is only ever changed through a conditional update keyed
    on its current value.
    """

    __tablename__ = "watch"
    __table_args__ = (
        # At most one active watch per accused user and deadline in a group.
        Index(
            "ix_watch_group_accused_deadline",
            "group_id",
            "accused_user_id",
            "deadline",
            unique=True,
            sqlite_where=text(ACTIVE_STATE_FILTER),
            postgresql_where=text(ACTIVE_STATE_FILTER),
        ),
        Index("ix_watch_state_deadline", "state", "deadline"),
        Index("ix_watch_channel_id", "channel_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    group_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    accused_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    initiator_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Back-link only; never dereferenced by the engine.
    origin_message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    custom_message: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=WatchState.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    cleared_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voting_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Fixed when voting begins; the window never moves afterwards.
    voting_closes_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    voting_ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Final tally, written once at closure.
    guilty_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    not_guilty_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    cancel_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)


class WatchVote(Base):
    """One participant's position on a watch in the voting state."""

    __tablename__ = "watch_vote"
    __table_args__ = (
        Index("ix_watch_vote_watch_id", "watch_id"),
    )

    watch_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("watch.id", ondelete="CASCADE"),
        primary_key=True,
    )
    voter_user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    # Composite primary key rejects a second vote from the same voter.

    is_guilty_vote: Mapped[bool] = mapped_column(Boolean, nullable=False)
    voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
