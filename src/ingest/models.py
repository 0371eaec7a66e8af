"""Data models for the ingestion pipeline and the persisted catalog.

Pipeline records are in-memory only and change shape from stage to stage:

    MarketSnapshot -> NormalizedRecord -> MappedRecord -> StorageRecord

Catalog rows (Asset, Candle) are what the store reads back.

CRITICAL: All prices, volumes and market caps use Decimal. Never use float.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class Timeframe(str, Enum):
    """Sampling granularity of a candle."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ──────────────────────────────────────────────
# Pipeline records
# ──────────────────────────────────────────────


@dataclass
class MarketSnapshot:
    """One raw market summary from the provider plus its fetched OHLC history.

    `data` is the provider's record untouched (id, symbol, name,
    current_price, market_cap, total_volume, last_updated, ...).
    `history` holds raw [timestamp_ms, open, high, low, close] tuples.
    """

    data: dict[str, Any]
    history: list[list] = field(default_factory=list)


@dataclass
class AssetMetadata:
    """Canonical asset identity produced by the normalizer."""

    external_id: Any
    symbol: Any
    name: Any
    active: bool = True
    source: str = "coingecko"


@dataclass
class NormalizedRecord:
    """Normalizer output: canonical metadata next to the raw snapshot."""

    asset: AssetMetadata
    raw: MarketSnapshot


@dataclass
class CandleRecord:
    """A dated OHLC observation ready to be upserted."""

    timeframe: Timeframe
    date: str  # YYYY-MM-DD (UTC)
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal | None = None
    market_cap: Decimal | None = None
    liquidity: Decimal | None = None
    source: str = "coingecko"


@dataclass
class MappedRecord:
    """Series mapper output: metadata, raw snapshot and mapped candles."""

    asset: AssetMetadata
    raw: MarketSnapshot
    candles: list[CandleRecord]


@dataclass
class StorageRecord:
    """Storage-ready grouping of an asset and its candles."""

    asset: AssetMetadata
    candles: list[CandleRecord]


# ──────────────────────────────────────────────
# Catalog rows
# ──────────────────────────────────────────────


@dataclass
class Asset:
    """A persisted catalog asset."""

    id: str
    external_id: str
    symbol: str
    name: str
    active: bool
    source: str | None
    created_at: int  # Unix milliseconds
    updated_at: int  # Unix milliseconds


@dataclass
class Candle:
    """A persisted candle row.

    All numeric fields are restored from TEXT columns as Decimal.
    """

    id: str
    asset_id: str
    timeframe: Timeframe
    date: str
    open: Decimal | None
    high: Decimal | None
    low: Decimal | None
    close: Decimal | None
    volume: Decimal | None
    market_cap: Decimal | None
    liquidity: Decimal | None
    source: str | None
    ingested_at: int  # Unix milliseconds
