"""FastAPI dashboard application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from metaltracker.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        FastAPI application with the JSON API mounted under /api. Route
        handlers expect app.state.rate_service (and optionally
        app.state.scheduler) to be set by the caller.
    """
    app = FastAPI(
        title="Gold & Silver Rates Dashboard",
        lifespan=lifespan,
    )

    app.state.rate_service = None
    app.state.scheduler = None

    app.include_router(api.router, prefix="/api")

    return app
