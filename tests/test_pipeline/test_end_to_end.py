"""End-to-end ingestion: mocked market-data client, real SQLite catalog."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from ingest.data.store import CatalogStore
from ingest.market_data.client import MarketDataClient
from ingest.models import Timeframe
from ingest.pipeline.orchestrator import PipelineState, build_ingestion_pipeline


@pytest.fixture
def client(make_market_record) -> AsyncMock:
    client = AsyncMock(spec=MarketDataClient)
    client.fetch_markets.return_value = [make_market_record()]
    client.fetch_ohlc.return_value = [[1704067200000, 42000, 43000, 41000, 42500]]
    return client


async def _all_candles(store: CatalogStore, symbol: str):
    asset = await store.find_asset_by_symbol(symbol)
    return asset, await store.get_candles(asset.id)


@pytest.mark.asyncio
async def test_single_snapshot_produces_asset_and_candle(client, store, settings):
    pipeline = build_ingestion_pipeline(client, store, settings)

    result = await pipeline.run()

    assert result is True
    asset, candles = await _all_candles(store, "BTC")
    assert asset.name == "Bitcoin"
    assert asset.external_id == "bitcoin"
    assert len(candles) == 1
    candle = candles[0]
    assert candle.timeframe.value == "daily"
    assert candle.date == "2024-01-01"
    assert candle.open == Decimal("42000")
    assert candle.close == Decimal("42500")
    assert candle.source == "coingecko"


@pytest.mark.asyncio
async def test_rerun_updates_the_same_row(client, store, settings):
    pipeline = build_ingestion_pipeline(client, store, settings)
    await pipeline.run()

    client.fetch_ohlc.return_value = [[1704067200000, 42000, 44000, 41000, 43900]]
    await pipeline.run()

    _, candles = await _all_candles(store, "BTC")
    assert len(candles) == 1
    assert candles[0].close == Decimal("43900")
    assert candles[0].high == Decimal("44000")
    status = await store.get_data_status()
    assert status["total_assets"] == 1
    assert status["total_candles"] == 1


@pytest.mark.asyncio
async def test_invalid_records_are_not_persisted(client, store, settings, make_market_record):
    client.fetch_markets.return_value = [
        make_market_record(),
        make_market_record("ethereum", symbol="eth", name="Ethereum", current_price=None),
    ]
    pipeline = build_ingestion_pipeline(client, store, settings)

    await pipeline.run()

    assert await store.find_asset_by_symbol("ETH") is None
    assert (await store.get_data_status())["total_assets"] == 1


@pytest.mark.asyncio
async def test_empty_history_still_catalogs_asset(client, store, settings):
    client.fetch_ohlc.return_value = []
    pipeline = build_ingestion_pipeline(client, store, settings)

    run = await pipeline.execute()

    assert run.state is PipelineState.COMPLETED
    asset, candles = await _all_candles(store, "BTC")
    assert asset is not None
    assert candles == []


@pytest.mark.asyncio
async def test_stage_names_follow_fixed_order(client, store, settings):
    pipeline = build_ingestion_pipeline(client, store, settings)

    assert pipeline.stage_names == [
        "fetch",
        "normalize",
        "validate",
        "map_series",
        "format",
        "store",
    ]


@pytest.mark.asyncio
async def test_malformed_market_record_does_not_fail_run(client, store, settings, make_market_record):
    client.fetch_markets.return_value = [make_market_record(), None]
    pipeline = build_ingestion_pipeline(client, store, settings)

    run = await pipeline.execute()

    assert run.state is PipelineState.COMPLETED
    assert (await store.get_data_status())["total_assets"] == 1
    client.fetch_ohlc.assert_awaited_once()


@pytest.mark.asyncio
async def test_read_timeframe_setting_does_not_relabel_ingested_candles(client, store, settings):
    settings.api.timeframe = "weekly"
    pipeline = build_ingestion_pipeline(client, store, settings)

    await pipeline.run()

    asset = await store.find_asset_by_symbol("BTC")
    assert len(await store.get_candles(asset.id, Timeframe.DAILY)) == 1
    assert await store.get_candles(asset.id, Timeframe.WEEKLY) == []
