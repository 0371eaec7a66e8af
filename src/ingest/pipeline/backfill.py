"""One-shot history backfill for catalogued assets that have no candles.

Covers assets whose history was skipped or came back empty in an earlier
run. Uses the fetcher's retry policy and the series mapper, then upserts
the candles with a zero volume.
"""

from decimal import Decimal

from ingest.data.store import CatalogStore
from ingest.exceptions import StorageError
from ingest.logging import get_logger
from ingest.market_data.fetcher import RateLimitedFetcher
from ingest.models import Timeframe
from ingest.pipeline.series_mapper import map_series

logger = get_logger(__name__)


async def backfill_missing_history(
    fetcher: RateLimitedFetcher,
    store: CatalogStore,
    source: str = "coingecko",
    timeframe: Timeframe = Timeframe.DAILY,
) -> int:
    """Fetch and store history for every asset without candles.

    Returns the number of assets that received at least one candle.
    """
    assets = await store.get_assets_without_candles()
    filled = 0

    for asset in assets:
        series = await fetcher.fetch_historical_series(asset.external_id)
        candles = map_series(series, source, timeframe)
        if not candles:
            logger.debug("backfill_no_history", symbol=asset.symbol)
            continue

        written = 0
        for candle in candles:
            candle.volume = Decimal("0")
            try:
                await store.upsert_candle(asset.id, candle)
                written += 1
            except StorageError as e:
                logger.error(
                    "backfill_candle_write_failed",
                    symbol=asset.symbol,
                    date=candle.date,
                    error=str(e),
                )

        if written:
            filled += 1
        logger.info("backfill_asset_complete", symbol=asset.symbol, candles=written)

    logger.info("backfill_complete", candidates=len(assets), filled=filled)
    return filled
