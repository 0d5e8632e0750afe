"""FastAPI application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tokenomics.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the API application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to connect storage and start the scheduler.

    Route handlers read their collaborators from app.state: ``records``,
    ``indexer``, ``blob_store`` and ``token``. The caller sets them, either
    in the lifespan or directly (tests).
    """
    app = FastAPI(
        title="Tokenomics Indexer",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(routes.router, prefix="/api")
    app.include_router(routes.blob_router)

    return app
