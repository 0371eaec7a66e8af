"""POST endpoints that trigger ingestion work."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from ingest.api.formatting import to_jsonable
from ingest.exceptions import PipelineFailed
from ingest.pipeline.backfill import backfill_missing_history

log = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/run")
async def run_pipeline(request: Request) -> JSONResponse:
    """Run the ingestion pipeline once and return the final stage's output."""
    pipeline = request.app.state.pipeline

    try:
        result = await pipeline.run()
    except PipelineFailed as e:
        log.error("pipeline_run_via_api_failed", stage=e.stage, error=str(e.__cause__))
        raise HTTPException(
            status_code=500,
            detail={"message": str(e), "stage": e.stage},
        ) from e

    log.info("pipeline_run_via_api_complete")
    return JSONResponse(content={"result": to_jsonable(result)})


@router.post("/backfill")
async def backfill(request: Request) -> JSONResponse:
    """Fetch history for catalogued assets that have no candles yet."""
    settings = request.app.state.settings
    filled = await backfill_missing_history(
        request.app.state.fetcher,
        request.app.state.store,
        source=settings.pipeline.source_tag,
    )
    return JSONResponse(content={"assets_filled": filled})
