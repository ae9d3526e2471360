"""Shared API dependencies and error mapping."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ratwatch.db.session import get_db
from ratwatch.services.errors import (
    DuplicateVoteError,
    DuplicateWatchError,
    InvariantViolationError,
    LeaderboardNotPublicError,
    NotAccusedError,
    VotingClosedError,
    WatchError,
    WatchNotFoundError,
)
from ratwatch.services.lifecycle import LifecycleService
from ratwatch.services.notifications import WatchNotifier, get_notifier
from ratwatch.services.stats import StatsService
from ratwatch.services.voting import VotingService

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

STALE_TRANSITION_DETAIL = "Watch has already been handled"

_STATUS_BY_ERROR: tuple[tuple[type[WatchError], int], ...] = (
    (WatchNotFoundError, status.HTTP_404_NOT_FOUND),
    (NotAccusedError, status.HTTP_403_FORBIDDEN),
    (LeaderboardNotPublicError, status.HTTP_404_NOT_FOUND),
    (DuplicateWatchError, status.HTTP_409_CONFLICT),
    (DuplicateVoteError, status.HTTP_409_CONFLICT),
    (VotingClosedError, status.HTTP_409_CONFLICT),
    (InvariantViolationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def get_notifier_dep() -> WatchNotifier:
    """Return the shared lifecycle event notifier."""
    return get_notifier()


NotifierDep = Annotated[WatchNotifier, Depends(get_notifier_dep)]


def get_lifecycle_service(db: SessionDep, notifier: NotifierDep) -> LifecycleService:
    """Return a lifecycle service bound to the request session."""
    return LifecycleService(db, notifier)


def get_voting_service(db: SessionDep, notifier: NotifierDep) -> VotingService:
    """Return a voting service bound to the request session."""
    return VotingService(db, notifier)


def get_stats_service(db: SessionDep) -> StatsService:
    """Return a stats service bound to the request session."""
    return StatsService(db)


LifecycleDep = Annotated[LifecycleService, Depends(get_lifecycle_service)]
VotingDep = Annotated[VotingService, Depends(get_voting_service)]
StatsDep = Annotated[StatsService, Depends(get_stats_service)]


def http_error(err: WatchError) -> HTTPException:
    """Translate a lifecycle error into an HTTP error response.

    Validation failures without a more specific mapping become 400.
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            return HTTPException(status_code=status_code, detail=str(err))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err))


def stale_transition() -> HTTPException:
    """Return the response for a transition another path already made."""
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=STALE_TRANSITION_DETAIL)
