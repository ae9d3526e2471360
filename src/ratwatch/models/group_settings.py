# src/ratwatch/models/group_settings.py
"""Per-group configuration for watches."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ratwatch.db.session import Base
from ratwatch.db.time import utcnow


class GroupSettings(Base):
    """Settings row for a group, created with defaults on first access."""

    __tablename__ = "group_settings"

    group_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    voting_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    max_advance_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    public_leaderboard_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
