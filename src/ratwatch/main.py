# src/ratwatch/main.py
"""Main entry point for the Rat Watch service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ratwatch.api.v1 import (
    groups_router,
    stats_router,
    system_router,
    votes_router,
    watches_router,
)
from ratwatch.core.settings import settings
from ratwatch.services.scheduler import WatchScheduler, get_scheduler

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Deadline watches, timed votes and accountability stats",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(watches_router, prefix="/api/v1")
app.include_router(votes_router, prefix="/api/v1")
app.include_router(stats_router, prefix="/api/v1")
app.include_router(groups_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        await scheduler.start()
        app.state.scheduler = scheduler
        logger.info(
            "Watch scheduler started (interval %.1fs, grace %ds)",
            settings.scheduler_interval_seconds,
            settings.deadline_grace_seconds,
        )
    else:
        app.state.scheduler = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler: WatchScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler:
        await scheduler.stop()
        logger.info("Watch scheduler stopped")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("ratwatch.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
