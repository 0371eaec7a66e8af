"""Display formatting for catalog listings.

Turns an asset and its latest candle into the compact summary the read
API returns (price, daily change, market cap, volume).
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from ingest.models import Asset, Candle

_SUFFIXES = (
    (Decimal("1e12"), "T"),
    (Decimal("1e9"), "B"),
    (Decimal("1e6"), "M"),
    (Decimal("1e3"), "K"),
)


def format_large_number(value: Decimal) -> str:
    """Format a number in compact notation, e.g. 1234567890 -> '1.23B'."""
    for threshold, suffix in _SUFFIXES:
        if value >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:.2f}"


def daily_change_percent(open_: Decimal | None, close: Decimal | None) -> Decimal:
    """Percent change from open to close; 0 when open is missing or not positive."""
    open_ = open_ or Decimal("0")
    close = close or Decimal("0")
    if open_ <= 0:
        return Decimal("0")
    return (close - open_) / open_ * 100


def summarize_asset(asset: Asset, candle: Candle | None) -> dict[str, Any]:
    """Build the listing row for one asset from its latest candle."""
    open_ = candle.open if candle else None
    close = (candle.close if candle else None) or Decimal("0")
    market_cap = (candle.market_cap if candle else None) or Decimal("0")
    volume = (candle.volume if candle else None) or Decimal("0")

    change = daily_change_percent(open_, close)
    sign = "+" if change >= 0 else ""

    return {
        "id": asset.id,
        "name": asset.name,
        "symbol": asset.symbol,
        "price": f"${close:,.2f}",
        "daily_price_change": f"{sign}{change:.2f}%",
        "market_cap": f"${format_large_number(market_cap)}" if market_cap else "$0",
        "volume": f"${format_large_number(volume)}" if volume else "$0",
        "last_date": candle.date if candle else None,
    }


def to_jsonable(obj: Any) -> Any:
    """Recursively convert Decimal and Enum values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    if isinstance(obj, Enum):
        return obj.value
    return obj
