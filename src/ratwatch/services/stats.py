"""Read-only statistics over a group's watch history.

Everything here is derived on demand from outcome records and terminal
watches. Nothing is cached, so repeated calls over the same history return
the same answer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ratwatch.core.settings import settings
from ratwatch.db.time import ensure_utc
from ratwatch.models import OutcomeRecord, Watch, WatchState
from ratwatch.repositories.watch_repo import WatchRepository
from ratwatch.schemas.stats import (
    FunStats,
    LeaderboardEntry,
    OutcomeRecordResponse,
    StatRecord,
    StreakRecord,
    StreakSummary,
    UserMetric,
    UserStats,
)
from ratwatch.services.errors import LeaderboardNotPublicError
from ratwatch.services.group_settings import GroupSettingsService

logger = logging.getLogger(__name__)

METRIC_SORTS = ("watched", "guilty", "accountability")


def longest_runs(states: Iterable[str]) -> tuple[int, int]:
    """Return the longest ``(guilty, cleared_early)`` runs in ``states``.

    Any other terminal state breaks both runs.
    """
    best_guilty = best_clean = 0
    guilty = clean = 0
    for state in states:
        if state == WatchState.GUILTY.value:
            guilty += 1
            clean = 0
        elif state == WatchState.CLEARED_EARLY.value:
            clean += 1
            guilty = 0
        else:
            guilty = clean = 0
        best_guilty = max(best_guilty, guilty)
        best_clean = max(best_clean, clean)
    return best_guilty, best_clean


def score(cleared_early: int, total: int) -> float:
    """Return the accountability percentage, 0.0 when there is no history."""
    if total <= 0:
        return 0.0
    return cleared_early / total * 100


def describe_duration(delta: timedelta) -> str:
    """Render a duration as e.g. ``"1 hour 5 minutes"``."""
    seconds = max(0, int(delta.total_seconds()))
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    parts = []
    for amount, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if amount:
            parts.append(f"{amount} {unit}{'' if amount == 1 else 's'}")
    if not parts:
        parts.append(f"{seconds} second{'' if seconds == 1 else 's'}")
    return " ".join(parts)


class StatsService:
    """Leaderboards, accountability scores, streaks and records for a group."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = WatchRepository(db)

    def leaderboard(self, group_id: int, limit: int | None = None) -> list[LeaderboardEntry]:
        """Rank users by guilty verdicts; ties go to the most recent verdict."""
        limit = limit or settings.leaderboard_default_limit
        guilty_count = func.count(OutcomeRecord.id).label("guilty_count")
        last_recorded = func.max(OutcomeRecord.recorded_at).label("last_recorded_at")
        rows = self.db.execute(
            select(OutcomeRecord.user_id, guilty_count, last_recorded)
            .where(OutcomeRecord.group_id == group_id)
            .group_by(OutcomeRecord.user_id)
            .order_by(guilty_count.desc(), last_recorded.desc(), OutcomeRecord.user_id)
            .limit(limit)
        ).all()
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=row.user_id,
                guilty_count=row.guilty_count,
                last_recorded_at=ensure_utc(row.last_recorded_at),
            )
            for rank, row in enumerate(rows, start=1)
        ]

    def public_leaderboard(self, group_id: int, limit: int | None = None) -> list[LeaderboardEntry]:
        """Return the leaderboard only if the group has made it public.

        Raises:
            LeaderboardNotPublicError: watches are disabled for the group or
                its leaderboard is private.
        """
        group = GroupSettingsService(self.db).peek(group_id)
        if group is None or not group.is_enabled or not group.public_leaderboard_enabled:
            logger.info("Public leaderboard requested for private group %d", group_id)
            raise LeaderboardNotPublicError(
                f"The leaderboard for group {group_id} is not public"
            )
        return self.leaderboard(group_id, limit)

    def accountability_score(self, group_id: int, user_id: int) -> float:
        """Percentage of a user's closed watches that ended in an early check-in."""
        watches = self.repo.terminal_watches(group_id, user_id)
        cleared = sum(1 for watch in watches if watch.state == WatchState.CLEARED_EARLY.value)
        return score(cleared, len(watches))

    def streaks(self, group_id: int, user_id: int) -> StreakSummary:
        """Longest guilty and early check-in runs for a user."""
        watches = self.repo.terminal_watches(group_id, user_id)
        guilty, clean = longest_runs(watch.state for watch in watches)
        return StreakSummary(
            user_id=user_id,
            longest_guilty_streak=guilty,
            longest_clean_streak=clean,
        )

    def user_stats(self, group_id: int, user_id: int) -> UserStats:
        """Guilty count and the most recent verdicts for a user."""
        records = self.repo.outcomes_for_user(
            group_id,
            user_id,
            limit=settings.recent_records_limit,
        )
        return UserStats(
            group_id=group_id,
            user_id=user_id,
            guilty_count=self.repo.count_outcomes_for_user(group_id, user_id),
            recent_records=[OutcomeRecordResponse.model_validate(record) for record in records],
        )

    def user_metrics(
        self,
        group_id: int,
        sort_by: str = "watched",
        limit: int | None = None,
    ) -> list[UserMetric]:
        """Per-user metrics for everyone with closed watches in the group.

        ``sort_by`` is one of ``watched``, ``guilty`` or ``accountability``;
        anything else falls back to ``watched``.
        """
        if sort_by not in METRIC_SORTS:
            logger.debug("Unknown metrics sort %r; using 'watched'", sort_by)
            sort_by = "watched"
        limit = limit or settings.leaderboard_default_limit

        by_user: dict[int, list[Watch]] = defaultdict(list)
        for watch in self.repo.terminal_watches(group_id):
            by_user[watch.accused_user_id].append(watch)

        metrics = []
        for user_id, watches in by_user.items():
            guilty = [w for w in watches if w.state == WatchState.GUILTY.value]
            cleared = sum(1 for w in watches if w.state == WatchState.CLEARED_EARLY.value)
            incidents = [ensure_utc(w.voting_ended_at) for w in guilty if w.voting_ended_at]
            metrics.append(
                UserMetric(
                    user_id=user_id,
                    watches_against=len(watches),
                    guilty_count=len(guilty),
                    early_check_in_count=cleared,
                    accountability_score=score(cleared, len(watches)),
                    last_incident_at=max(incidents) if incidents else None,
                )
            )

        if sort_by == "guilty":
            metrics.sort(key=lambda m: (-m.guilty_count, -m.watches_against, m.user_id))
        elif sort_by == "accountability":
            metrics.sort(key=lambda m: (-m.accountability_score, -m.watches_against, m.user_id))
        else:
            metrics.sort(key=lambda m: (-m.watches_against, -m.guilty_count, m.user_id))
        return metrics[:limit]

    def fun_stats(self, group_id: int) -> FunStats:
        """Record holders across the group's history."""
        outcomes = self.repo.outcomes_for_group(group_id)
        watches = self.repo.terminal_watches(group_id)
        landslide, closest = self._margin_records(outcomes)
        fastest, latest = self._timing_records(watches)
        guilty_streak, clean_streak = self._streak_records(watches)
        return FunStats(
            group_id=group_id,
            biggest_landslide=landslide,
            closest_call=closest,
            fastest_check_in=fastest,
            latest_check_in=latest,
            longest_guilty_streak=guilty_streak,
            longest_clean_streak=clean_streak,
        )

    @staticmethod
    def _margin_records(
        outcomes: Sequence[OutcomeRecord],
    ) -> tuple[StatRecord | None, StatRecord | None]:
        # Oldest first, so strict comparisons keep the earliest on ties.
        biggest: OutcomeRecord | None = None
        smallest: OutcomeRecord | None = None
        for record in outcomes:
            margin = abs(record.guilty_votes - record.not_guilty_votes)
            if biggest is None or margin > abs(biggest.guilty_votes - biggest.not_guilty_votes):
                biggest = record
            if smallest is None or margin < abs(smallest.guilty_votes - smallest.not_guilty_votes):
                smallest = record

        def as_record(record: OutcomeRecord | None, label: str) -> StatRecord | None:
            if record is None:
                return None
            return StatRecord(
                watch_id=record.watch_id,
                user_id=record.user_id,
                value=abs(record.guilty_votes - record.not_guilty_votes),
                description=f"{label}: Guilty {record.guilty_votes}-{record.not_guilty_votes}",
                recorded_at=ensure_utc(record.recorded_at),
            )

        return as_record(biggest, "Biggest landslide"), as_record(smallest, "Closest call")

    @staticmethod
    def _timing_records(watches: Sequence[Watch]) -> tuple[StatRecord | None, StatRecord | None]:
        fastest: tuple[timedelta, Watch] | None = None
        latest: tuple[timedelta, Watch] | None = None
        for watch in watches:
            if watch.state != WatchState.CLEARED_EARLY.value or watch.cleared_at is None:
                continue
            cleared_at = ensure_utc(watch.cleared_at)
            elapsed = cleared_at - ensure_utc(watch.created_at)
            if fastest is None or elapsed < fastest[0]:
                fastest = (elapsed, watch)
            if cleared_at <= ensure_utc(watch.deadline) and (latest is None or elapsed > latest[0]):
                latest = (elapsed, watch)

        fastest_record = None
        if fastest is not None:
            elapsed, watch = fastest
            fastest_record = StatRecord(
                watch_id=watch.id,
                user_id=watch.accused_user_id,
                value=elapsed.total_seconds(),
                description=f"Checked in {describe_duration(elapsed)} after being put on watch",
                recorded_at=ensure_utc(watch.cleared_at),
            )

        latest_record = None
        if latest is not None:
            elapsed, watch = latest
            remaining = ensure_utc(watch.deadline) - ensure_utc(watch.cleared_at)
            latest_record = StatRecord(
                watch_id=watch.id,
                user_id=watch.accused_user_id,
                value=elapsed.total_seconds(),
                description=f"Checked in {describe_duration(remaining)} before deadline",
                recorded_at=ensure_utc(watch.cleared_at),
            )
        return fastest_record, latest_record

    @staticmethod
    def _streak_records(
        watches: Sequence[Watch],
    ) -> tuple[StreakRecord | None, StreakRecord | None]:
        by_user: dict[int, list[str]] = defaultdict(list)
        for watch in watches:
            by_user[watch.accused_user_id].append(watch.state)

        best_guilty: tuple[int, int] | None = None
        best_clean: tuple[int, int] | None = None
        for user_id in sorted(by_user):
            guilty, clean = longest_runs(by_user[user_id])
            if guilty and (best_guilty is None or guilty > best_guilty[1]):
                best_guilty = (user_id, guilty)
            if clean and (best_clean is None or clean > best_clean[1]):
                best_clean = (user_id, clean)

        guilty_record = None
        if best_guilty is not None:
            guilty_record = StreakRecord(
                user_id=best_guilty[0],
                streak_count=best_guilty[1],
                description=f"{best_guilty[1]} guilty verdicts in a row",
            )
        clean_record = None
        if best_clean is not None:
            clean_record = StreakRecord(
                user_id=best_clean[0],
                streak_count=best_clean[1],
                description=f"{best_clean[1]} early check-ins in a row",
            )
        return guilty_record, clean_record
