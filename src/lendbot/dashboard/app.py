"""FastAPI status application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from lendbot.dashboard.routes import api


def create_status_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the read-only status API.

    Route handlers expect ``app.state.scheduler`` and ``app.state.pool`` to be
    set, either by the lifespan in main.py or directly by tests.

    Args:
        lifespan: Optional async context manager for application lifespan events.

    Returns:
        Configured FastAPI application with the JSON API mounted at /api.
    """
    app = FastAPI(
        title="Funding Lending Bot Status",
        lifespan=lifespan,
    )
    app.include_router(api.router, prefix="/api")
    return app
