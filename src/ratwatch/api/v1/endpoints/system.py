"""System and transparency endpoints for the Rat Watch API."""

from __future__ import annotations

from fastapi import APIRouter

from ratwatch.core.settings import settings
from ratwatch.repositories.watch_repo import WatchRepository

from ..dependencies import SessionDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes connection strings; suitable for admin dashboards.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
        },
        "scheduler": {
            "enabled": settings.scheduler_enabled,
            "interval_seconds": settings.scheduler_interval_seconds,
            "deadline_grace_seconds": settings.deadline_grace_seconds,
        },
        "voting": {
            "duration_minutes": settings.voting_duration_minutes,
            "tie_verdict": settings.tie_verdict,
        },
        "limits": {
            "max_advance_hours": settings.max_advance_hours,
            "custom_message_max_length": settings.custom_message_max_length,
        },
    }


@router.get("/active")
async def get_active(db: SessionDep) -> dict[str, bool]:
    """Report whether any group has a watch pending or voting."""
    return {"has_active_watches": WatchRepository(db).has_active()}
