"""Per-group watch settings."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ratwatch.core.settings import settings
from ratwatch.db.time import utcnow
from ratwatch.models import GroupSettings

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {
        "is_enabled",
        "voting_duration_minutes",
        "max_advance_hours",
        "public_leaderboard_enabled",
    }
)


class GroupSettingsService:
    """Read and update the settings row for a group."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def peek(self, group_id: int) -> GroupSettings | None:
        """Return the stored settings without creating them."""
        return self.db.get(GroupSettings, group_id)

    def get_or_create(self, group_id: int) -> GroupSettings:
        """Return the group's settings, creating a row with defaults if missing."""
        existing = self.db.get(GroupSettings, group_id)
        if existing is not None:
            return existing

        now = utcnow()
        row = GroupSettings(
            group_id=group_id,
            is_enabled=True,
            voting_duration_minutes=settings.voting_duration_minutes,
            max_advance_hours=settings.max_advance_hours,
            public_leaderboard_enabled=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the row first.
            self.db.rollback()
            return self.db.get(GroupSettings, group_id)  # type: ignore[return-value]
        logger.info("Created default watch settings for group %d", group_id)
        return row

    def update(self, group_id: int, **changes: Any) -> GroupSettings:
        """Apply ``changes`` to the group's settings and persist them."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown group settings: {', '.join(sorted(unknown))}")

        row = self.get_or_create(group_id)
        logger.debug(
            "Current settings for group %d: enabled=%s voting=%dm advance=%dh public=%s",
            group_id,
            row.is_enabled,
            row.voting_duration_minutes,
            row.max_advance_hours,
            row.public_leaderboard_enabled,
        )
        for field, value in changes.items():
            if value is not None:
                setattr(row, field, value)
        row.updated_at = utcnow()
        self.db.commit()
        logger.info("Updated watch settings for group %d", group_id)
        return row

    def voting_duration_minutes(self, group_id: int) -> int:
        """Return the voting window length for a group."""
        row = self.peek(group_id)
        if row is None:
            return settings.voting_duration_minutes
        return row.voting_duration_minutes
