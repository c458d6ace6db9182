"""
FastAPI application entrypoint for the OAuth credential refresh engine.

Serve with ``uvicorn oauthkeeper.main:app --host 0.0.0.0 --port 8000``.
"""

from __future__ import annotations

from fastapi import FastAPI

from oauthkeeper.api.routes import router as api_router
from oauthkeeper.core.config import get_settings
from oauthkeeper.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OAuth Credential Refresh Engine",
        version="0.1.0",
        description=(
            "Acquires third-party OAuth credentials and keeps them fresh before "
            "they expire."
        ),
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
