"""JSON read endpoints over the asset catalog and candle series."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from ingest.api.formatting import summarize_asset, to_jsonable
from ingest.data.query import parse_pagination, parse_search
from ingest.exceptions import InvalidQueryError
from ingest.models import Timeframe

router = APIRouter()


def _parse_timeframe(value: str | None, default: str) -> Timeframe:
    try:
        return Timeframe(value or default)
    except ValueError as e:
        raise InvalidQueryError(f"Invalid timeframe: {value}") from e


@router.get("/assets")
async def list_assets(
    request: Request,
    page: str | None = None,
    size: str | None = None,
    searchTerm: str | None = None,  # noqa: N803 -- public query parameter name
) -> JSONResponse:
    """Paginated assets, each summarized from its latest candle."""
    settings = request.app.state.settings
    store = request.app.state.store

    pagination = parse_pagination(
        page,
        size,
        default_size=settings.api.default_page_size,
        max_size=settings.api.max_page_size,
    )
    search = parse_search(searchTerm, settings.api.search_fields)
    timeframe = Timeframe(settings.api.timeframe)

    assets, total = await store.list_assets(pagination, search)
    latest = await store.get_latest_candles([a.id for a in assets], timeframe)

    return JSONResponse(content={
        "data": [summarize_asset(a, latest.get(a.id)) for a in assets],
        "total": total,
        "page": pagination.page,
        "limit": pagination.limit,
    })


@router.get("/assets/{symbol}")
async def get_asset(request: Request, symbol: str) -> JSONResponse:
    """Single asset by symbol (case-insensitive)."""
    store = request.app.state.store
    asset = await store.find_asset_by_symbol(symbol.upper())
    if asset is None:
        raise HTTPException(status_code=404, detail=f"Asset {symbol} not found")
    return JSONResponse(content=to_jsonable(asdict(asset)))


@router.get("/candles/{asset_id}")
async def get_candles(
    request: Request,
    asset_id: str,
    timeframe: str | None = None,
) -> JSONResponse:
    """Candles for one asset and timeframe, ascending by date."""
    tf = _parse_timeframe(timeframe, request.app.state.settings.api.timeframe)
    candles = await request.app.state.store.get_candles(asset_id, tf)
    return JSONResponse(content=to_jsonable([asdict(c) for c in candles]))


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Aggregate catalog counts and date coverage."""
    status = await request.app.state.store.get_data_status()
    return JSONResponse(content=to_jsonable(status))
