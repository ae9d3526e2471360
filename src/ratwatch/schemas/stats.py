# src/ratwatch/schemas/stats.py
"""Statistics schemas: leaderboards, streaks and records."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MetricSort = Literal["watched", "guilty", "accountability"]


class LeaderboardEntry(BaseModel):
    """One ranked user on a group leaderboard."""

    rank: int
    user_id: int
    guilty_count: int
    last_recorded_at: datetime


class OutcomeRecordResponse(BaseModel):
    """A guilty verdict on record."""

    id: str
    watch_id: str
    group_id: int
    user_id: int
    guilty_votes: int
    not_guilty_votes: int
    recorded_at: datetime
    origin_message_link: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserStats(BaseModel):
    """Guilty count and most recent verdicts for a user."""

    group_id: int
    user_id: int
    guilty_count: int
    recent_records: list[OutcomeRecordResponse] = Field(default_factory=list)


class StreakSummary(BaseModel):
    """Longest runs of guilty verdicts and early check-ins for a user."""

    user_id: int
    longest_guilty_streak: int
    longest_clean_streak: int


class UserMetric(BaseModel):
    """Per-user accountability metrics for a group."""

    user_id: int
    watches_against: int
    guilty_count: int
    early_check_in_count: int
    accountability_score: float
    last_incident_at: datetime | None = None


class StatRecord(BaseModel):
    """A single record-holding watch, such as the biggest landslide."""

    watch_id: str
    user_id: int
    value: float
    description: str
    recorded_at: datetime | None = None


class StreakRecord(BaseModel):
    """The longest streak of one kind across a group."""

    user_id: int
    streak_count: int
    description: str


class FunStats(BaseModel):
    """Record holders for a group. Every field is None when nothing qualifies."""

    group_id: int
    biggest_landslide: StatRecord | None = None
    closest_call: StatRecord | None = None
    fastest_check_in: StatRecord | None = None
    latest_check_in: StatRecord | None = None
    longest_guilty_streak: StreakRecord | None = None
    longest_clean_streak: StreakRecord | None = None


class AccountabilityResponse(BaseModel):
    """Accountability score for one user."""

    group_id: int
    user_id: int
    accountability_score: float
