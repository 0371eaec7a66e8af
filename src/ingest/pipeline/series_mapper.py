"""Historical series mapping stage.

Converts raw [timestamp_ms, open, high, low, close] tuples into dated
CandleRecords. Tuples are independent: one bad tuple never affects the
others, and output order follows input order (not sorted by date).
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from ingest.logging import get_logger
from ingest.models import CandleRecord, MappedRecord, NormalizedRecord, Timeframe

logger = get_logger(__name__)


def format_date(timestamp_ms: int | float) -> str:
    """Return the UTC calendar date (YYYY-MM-DD) of a millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def _to_decimal(value: object) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def map_tuple(
    point: list | None,
    source: str,
    timeframe: Timeframe = Timeframe.DAILY,
) -> CandleRecord | None:
    """Map one raw tuple to a CandleRecord, or None if it must be dropped.

    Dropped when the tuple is empty, its timestamp is falsy, or a price
    field is not numeric.
    """
    if not point:
        return None

    timestamp = point[0]
    if not timestamp:
        return None

    prices = list(point[1:5]) + [None] * (4 - len(point[1:5]))
    try:
        open_, high, low, close = (_to_decimal(p) for p in prices)
        date = format_date(timestamp)
    except (InvalidOperation, TypeError, ValueError, OverflowError, OSError):
        logger.debug("ohlc_tuple_dropped", point=point)
        return None

    return CandleRecord(
        timeframe=timeframe,
        date=date,
        open=open_,
        high=high,
        low=low,
        close=close,
        source=source,
    )


def map_series(
    series: list[list],
    source: str,
    timeframe: Timeframe = Timeframe.DAILY,
) -> list[CandleRecord]:
    """Map a whole raw series, skipping tuples map_tuple() rejects."""
    candles = []
    for point in series:
        candle = map_tuple(point, source, timeframe)
        if candle is not None:
            candles.append(candle)
    return candles


def map_to_ohlc(
    records: list[NormalizedRecord],
    timeframe: Timeframe = Timeframe.DAILY,
) -> list[MappedRecord]:
    """Attach mapped candles to each validated record.

    Candles inherit the provenance tag of their parent asset.
    """
    mapped = [
        MappedRecord(
            asset=r.asset,
            raw=r.raw,
            candles=map_series(r.raw.history, r.asset.source, timeframe),
        )
        for r in records
    ]
    logger.info(
        "series_mapped",
        assets=len(mapped),
        candles=sum(len(m.candles) for m in mapped),
    )
    return mapped
