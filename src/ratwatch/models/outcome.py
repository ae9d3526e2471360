# src/ratwatch/models/outcome.py
"""Permanent ledger of guilty verdicts."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ratwatch.db.session import Base
from ratwatch.db.time import utcnow


class OutcomeRecord(Base):
    """Ledger entry written in the same transaction as a guilty verdict.

    Group and accused ids are denormalized so leaderboards never need to
    join back to the watch table.
    """

    __tablename__ = "outcome_record"
    __table_args__ = (
        Index("ix_outcome_record_group_user", "group_id", "user_id"),
        Index("ix_outcome_record_recorded_at", "recorded_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    watch_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("watch.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    group_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guilty_votes: Mapped[int] = mapped_column(Integer, nullable=False)
    not_guilty_votes: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    origin_message_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
