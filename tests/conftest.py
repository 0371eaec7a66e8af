"""Shared test fixtures for the ingestion pipeline."""

import pytest
import pytest_asyncio

from ingest.config import (
    ApiSettings,
    AppSettings,
    MarketDataSettings,
    PipelineSettings,
    StorageSettings,
)
from ingest.data.database import CatalogDatabase
from ingest.data.store import CatalogStore


def _market_record(
    coin_id: str = "bitcoin",
    symbol: str = "btc",
    name: str = "Bitcoin",
    current_price: float | None = 50000,
    last_updated: str | None = "2024-01-01",
    **extra,
) -> dict:
    """Build a CoinGecko /coins/markets record with the fields the pipeline reads."""
    record = {
        "id": coin_id,
        "symbol": symbol,
        "name": name,
        "current_price": current_price,
        "market_cap": 1_000_000_000,
        "total_volume": 25_000_000,
        "last_updated": last_updated,
    }
    record.update(extra)
    return record


@pytest.fixture
def make_market_record():
    """Factory for raw market records."""
    return _market_record


@pytest.fixture
def market_settings() -> MarketDataSettings:
    """MarketDataSettings with no page delay and a 1s retry base."""
    return MarketDataSettings(
        pages=1,
        per_page=250,
        page_delay=0.0,
        max_retries=5,
        retry_base_delay=1.0,
        history_days=365,
    )


@pytest.fixture
def settings(tmp_path, market_settings: MarketDataSettings) -> AppSettings:
    """Return AppSettings pointing at a temporary database."""
    return AppSettings(
        log_level="DEBUG",
        market_data=market_settings,
        pipeline=PipelineSettings(source_tag="coingecko"),
        storage=StorageSettings(db_path=str(tmp_path / "market.db")),
        api=ApiSettings(),
    )


@pytest_asyncio.fixture
async def database(settings: AppSettings):
    """Connected CatalogDatabase on a temporary file, closed after the test."""
    async with CatalogDatabase(settings.storage.db_path) as db:
        yield db


@pytest.fixture
def store(database: CatalogDatabase) -> CatalogStore:
    return CatalogStore(database)
