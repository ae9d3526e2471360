# src/ratwatch/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .groups import router as groups_router
from .stats import router as stats_router
from .system import router as system_router
from .votes import router as votes_router
from .watches import router as watches_router

__all__ = [
    "groups_router",
    "stats_router",
    "system_router",
    "votes_router",
    "watches_router",
]
