"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the schema.  On
shutdown it closes the connection cleanly.

Routers
-------
    /reader    Content pipeline (process supplied content, open a URL)
    /readings  Per-reading highlight CRUD
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.db import get_connection, init_db

from backend.api.routers import highlights as highlights_router
from backend.api.routers import reader as reader_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="StudyFlow Reader API",
        description=(
            "Backend for the StudyFlow in-app reader: scraped-content "
            "highlighting, topic-link extraction, sanitisation and "
            "per-reading highlight storage."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reader_router.router, prefix="/reader", tags=["reader"])
    app.include_router(highlights_router.router, prefix="/readings", tags=["highlights"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn backend.api.app:app --reload
app = create_app()
