# src/ratwatch/api/v1/endpoints/watches.py
"""Watch lifecycle endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query, status

from ratwatch.models import Watch, WatchState
from ratwatch.repositories.watch_repo import WatchFilter
from ratwatch.schemas.watch import (
    CancelRequest,
    ClearAllRequest,
    ClearAllResponse,
    ClearRequest,
    WatchCreate,
    WatchPage,
    WatchResponse,
)
from ratwatch.services.errors import WatchError

from ..dependencies import LifecycleDep, http_error, stale_transition

router = APIRouter(prefix="/watches", tags=["watches"])


@router.post("/", response_model=WatchResponse, status_code=status.HTTP_201_CREATED)
async def create_watch(watch_data: WatchCreate, lifecycle: LifecycleDep) -> Watch:
    """Put a user on watch until the given deadline."""
    try:
        return lifecycle.create(watch_data)
    except WatchError as err:
        raise http_error(err) from err


@router.get("/", response_model=WatchPage)
async def list_watches(
    lifecycle: LifecycleDep,
    group_id: int,
    states: Annotated[list[WatchState] | None, Query()] = None,
    accused_user_id: int | None = None,
    initiator_user_id: int | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    keyword: Annotated[str | None, Query(max_length=100)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> WatchPage:
    """List a group's watches, newest first."""
    filters = WatchFilter(
        states=states,
        accused_user_id=accused_user_id,
        initiator_user_id=initiator_user_id,
        created_after=created_after,
        created_before=created_before,
        keyword=keyword,
    )
    items, total = lifecycle.repo.list_for_group(
        group_id,
        page=page,
        page_size=page_size,
        filters=filters,
    )
    return WatchPage(
        items=[WatchResponse.model_validate(watch) for watch in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/clear-all", response_model=ClearAllResponse)
async def clear_all_watches(request: ClearAllRequest, lifecycle: LifecycleDep) -> ClearAllResponse:
    """Check in on every pending watch against a user in a group."""
    cleared = lifecycle.clear_all_for_user(request.group_id, request.user_id)
    return ClearAllResponse(cleared=cleared)


@router.get("/{watch_id}", response_model=WatchResponse)
async def get_watch(watch_id: str, lifecycle: LifecycleDep) -> Watch:
    """Get a single watch."""
    try:
        return lifecycle.get(watch_id)
    except WatchError as err:
        raise http_error(err) from err


@router.post("/{watch_id}/clear", response_model=WatchResponse)
async def clear_watch(watch_id: str, request: ClearRequest, lifecycle: LifecycleDep) -> Watch:
    """Check in early. Only the accused may clear their own watch."""
    try:
        cleared = lifecycle.clear_early(watch_id, request.requester_id)
    except WatchError as err:
        raise http_error(err) from err
    if not cleared:
        raise stale_transition()
    return lifecycle.get(watch_id)


@router.post("/{watch_id}/cancel", response_model=WatchResponse)
async def cancel_watch(
    watch_id: str,
    lifecycle: LifecycleDep,
    request: CancelRequest | None = None,
) -> Watch:
    """Cancel a watch that has not reached its deadline yet."""
    reason = request.reason if request is not None else None
    try:
        cancelled = lifecycle.cancel(watch_id, reason)
    except WatchError as err:
        raise http_error(err) from err
    if not cancelled:
        raise stale_transition()
    return lifecycle.get(watch_id)
