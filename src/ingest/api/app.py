"""FastAPI application factory for the ingestion service."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ingest.api.routes import catalog, pipeline
from ingest.exceptions import InvalidQueryError


async def _invalid_query_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to open the database and market-data client
                  and to put the store, fetcher, pipeline and settings on
                  app.state.

    Returns:
        Configured FastAPI application with pipeline and catalog routes.
    """
    app = FastAPI(
        title="Crypto Market Data Ingestion",
        lifespan=lifespan,
    )

    app.add_exception_handler(InvalidQueryError, _invalid_query_handler)

    app.include_router(pipeline.router, prefix="/pipeline")
    app.include_router(catalog.router)

    return app
