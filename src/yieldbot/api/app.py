"""FastAPI application factory for the strategy action surface."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from yieldbot.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to start and stop the strategy agent.

    Returns:
        Application with the strategy routes mounted under /api. Route
        handlers read the agent from ``app.state.agent``.
    """
    app = FastAPI(
        title="Yield Strategy Agent",
        lifespan=lifespan,
    )
    app.include_router(routes.router, prefix="/api")
    return app
