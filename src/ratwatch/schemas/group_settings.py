# src/ratwatch/schemas/group_settings.py
"""Group settings schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GroupSettingsResponse(BaseModel):
    """Watch settings for a group."""

    group_id: int
    is_enabled: bool
    voting_duration_minutes: int
    max_advance_hours: int
    public_leaderboard_enabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupSettingsUpdate(BaseModel):
    """Partial update of a group's watch settings."""

    is_enabled: bool | None = None
    voting_duration_minutes: int | None = Field(None, ge=1, le=60)
    max_advance_hours: int | None = Field(None, ge=1, le=168)
    public_leaderboard_enabled: bool | None = None
