# src/ratwatch/api/v1/endpoints/stats.py
"""Leaderboard and statistics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from ratwatch.schemas.stats import (
    AccountabilityResponse,
    FunStats,
    LeaderboardEntry,
    StreakSummary,
    UserMetric,
    UserStats,
)
from ratwatch.services.errors import WatchError

from ..dependencies import StatsDep, http_error

router = APIRouter(prefix="/stats", tags=["stats"])

LimitQuery = Annotated[int | None, Query(ge=1, le=100)]


@router.get("/{group_id}/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    group_id: int,
    stats: StatsDep,
    limit: LimitQuery = None,
) -> list[LeaderboardEntry]:
    """Users with the most guilty verdicts in the group."""
    return stats.leaderboard(group_id, limit)


@router.get("/{group_id}/public-leaderboard", response_model=list[LeaderboardEntry])
async def get_public_leaderboard(
    group_id: int,
    stats: StatsDep,
    limit: LimitQuery = None,
) -> list[LeaderboardEntry]:
    """The leaderboard, for groups that have opted into sharing it."""
    try:
        return stats.public_leaderboard(group_id, limit)
    except WatchError as err:
        raise http_error(err) from err


@router.get("/{group_id}/users/{user_id}", response_model=UserStats)
async def get_user_stats(group_id: int, user_id: int, stats: StatsDep) -> UserStats:
    """Guilty count and most recent verdicts for a user."""
    return stats.user_stats(group_id, user_id)


@router.get("/{group_id}/users/{user_id}/streaks", response_model=StreakSummary)
async def get_user_streaks(group_id: int, user_id: int, stats: StatsDep) -> StreakSummary:
    """Longest guilty and early check-in runs for a user."""
    return stats.streaks(group_id, user_id)


@router.get("/{group_id}/users/{user_id}/accountability", response_model=AccountabilityResponse)
async def get_user_accountability(
    group_id: int,
    user_id: int,
    stats: StatsDep,
) -> AccountabilityResponse:
    return AccountabilityResponse(
        group_id=group_id,
        user_id=user_id,
        accountability_score=stats.accountability_score(group_id, user_id),
    )


@router.get("/{group_id}/metrics", response_model=list[UserMetric])
async def get_user_metrics(
    group_id: int,
    stats: StatsDep,
    sort_by: str = "watched",
    limit: LimitQuery = None,
) -> list[UserMetric]:
    """Per-user metrics sorted by ``watched``, ``guilty`` or ``accountability``."""
    return stats.user_metrics(group_id, sort_by, limit)


@router.get("/{group_id}/fun", response_model=FunStats)
async def get_fun_stats(group_id: int, stats: StatsDep) -> FunStats:
    """Record holders: landslides, close calls, check-in times and streaks."""
    return stats.fun_stats(group_id)
