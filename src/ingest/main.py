"""Entry points for the market-data ingestion service.

Two ways in, one orchestrator invocation:

- `ingest-run`: standalone batch. Opens the database and market-data
  client, runs the pipeline once, closes everything, exits non-zero if the
  run failed.
- `ingest-api`: uvicorn serving the FastAPI app. The lifespan context
  owns the database and client; POST /pipeline/run triggers a run.

Component wiring order (in _open_components):
1. CatalogDatabase (SQLite connection + schema)
2. CatalogStore (typed reads/writes)
3. CoinGeckoClient (aiohttp session)
4. RateLimitedFetcher (shared with the backfill endpoint)
5. Pipeline (fetch -> normalize -> validate -> map_series -> format -> store)
"""

import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from ingest.config import AppSettings
from ingest.data.database import CatalogDatabase
from ingest.data.store import CatalogStore
from ingest.exceptions import PipelineFailed
from ingest.logging import get_logger, setup_logging
from ingest.market_data.coingecko_client import CoinGeckoClient
from ingest.market_data.fetcher import RateLimitedFetcher
from ingest.pipeline.orchestrator import build_ingestion_pipeline


@asynccontextmanager
async def _open_components(settings: AppSettings) -> AsyncIterator[dict[str, Any]]:
    """Open the database and client, build the pipeline, and clean up on exit."""
    database = CatalogDatabase(settings.storage.db_path)
    client = CoinGeckoClient(settings.market_data)

    await database.connect()
    try:
        await client.connect()
        try:
            store = CatalogStore(database)
            yield {
                "database": database,
                "store": store,
                "client": client,
                "fetcher": RateLimitedFetcher(client, settings.market_data),
                "pipeline": build_ingestion_pipeline(client, store, settings),
            }
        finally:
            await client.close()
    finally:
        await database.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: opens database and client, stores store, fetcher, pipeline
    and settings on app.state. On shutdown: closes client and database.
    """
    logger = get_logger("ingest.main")
    settings: AppSettings = app.state.settings

    async with _open_components(settings) as components:
        app.state.store = components["store"]
        app.state.fetcher = components["fetcher"]
        app.state.pipeline = components["pipeline"]
        logger.info("lifespan_started", db_path=settings.storage.db_path)

        yield

    logger.info("ingestion_api_stopped")


async def run_once(settings: AppSettings | None = None) -> Any:
    """Run the ingestion pipeline once and return the final stage's output."""
    settings = settings or AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("ingest.main")

    async with _open_components(settings) as components:
        result = await components["pipeline"].run()

    logger.info("ingestion_run_finished", result=result)
    return result


def main() -> None:
    """Synchronous batch entry point."""
    try:
        asyncio.run(run_once())
    except PipelineFailed as e:
        get_logger("ingest.main").error(
            "ingestion_run_failed", stage=e.stage, error=str(e.__cause__)
        )
        sys.exit(1)


def serve() -> None:
    """Serve the HTTP API with uvicorn."""
    from ingest.api.app import create_app

    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("ingest.main")

    app = create_app(lifespan=lifespan)
    app.state.settings = settings

    logger.info("starting_api", host=settings.api.host, port=settings.api.port)
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )


if __name__ == "__main__":
    main()
