"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .events import WatchEvent, WatchEventType
from .group_settings import GroupSettingsResponse, GroupSettingsUpdate
from .stats import (
    AccountabilityResponse,
    FunStats,
    LeaderboardEntry,
    OutcomeRecordResponse,
    StatRecord,
    StreakRecord,
    StreakSummary,
    UserMetric,
    UserStats,
)
from .vote import TallyResponse, VoteCreate, VoteResponse
from .watch import (
    CancelRequest,
    ClearAllRequest,
    ClearAllResponse,
    ClearRequest,
    WatchCreate,
    WatchPage,
    WatchResponse,
)

__all__ = [
    "AccountabilityResponse", "FunStats", "LeaderboardEntry", "OutcomeRecordResponse",
    "StatRecord", "StreakRecord", "StreakSummary", "UserMetric", "UserStats",
    "CancelRequest", "ClearAllRequest", "ClearAllResponse", "ClearRequest",
    "GroupSettingsResponse", "GroupSettingsUpdate",
    "TallyResponse", "VoteCreate", "VoteResponse",
    "WatchCreate", "WatchEvent", "WatchEventType", "WatchPage", "WatchResponse",
]
