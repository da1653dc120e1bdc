"""
Bridge Status App
=================
FastAPI app exposing health and event statistics of the running bridge.
"""

from fastapi import FastAPI

from pipeline.deduplicator import EventDeduplicator
from pipeline.stats import EventStats, event_stats


def create_app(stats: EventStats = event_stats, deduplicator: EventDeduplicator | None = None) -> FastAPI:
    app = FastAPI(
        title="Ring Event Bridge",
        description="Status of the Ring to webhook event bridge",
        version="0.1.0",
    )
    app.state.stats = stats
    app.state.deduplicator = deduplicator

    from app.routers import health, stats as stats_router

    app.include_router(health.router)
    app.include_router(stats_router.router)
    return app
