# src/ratwatch/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    groups_router,
    stats_router,
    system_router,
    votes_router,
    watches_router,
)

__all__ = [
    "watches_router",
    "votes_router",
    "stats_router",
    "groups_router",
    "system_router",
]
