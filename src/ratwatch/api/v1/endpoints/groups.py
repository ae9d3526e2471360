# src/ratwatch/api/v1/endpoints/groups.py
"""Per-group watch settings endpoints."""

from fastapi import APIRouter

from ratwatch.models import GroupSettings
from ratwatch.schemas.group_settings import GroupSettingsResponse, GroupSettingsUpdate
from ratwatch.services.group_settings import GroupSettingsService

from ..dependencies import SessionDep

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("/{group_id}/settings", response_model=GroupSettingsResponse)
async def get_group_settings(group_id: int, db: SessionDep) -> GroupSettings:
    """Get a group's watch settings, creating the defaults on first access."""
    return GroupSettingsService(db).get_or_create(group_id)


@router.put("/{group_id}/settings", response_model=GroupSettingsResponse)
async def update_group_settings(
    group_id: int,
    update: GroupSettingsUpdate,
    db: SessionDep,
) -> GroupSettings:
    """Update a group's watch settings. Omitted fields are left unchanged."""
    return GroupSettingsService(db).update(group_id, **update.model_dump(exclude_none=True))
