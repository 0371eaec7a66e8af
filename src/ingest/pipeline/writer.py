"""Store writer stage -- the only stage with side effects besides fetching.

For each storage record: resolve the asset by symbol (inserting it on
first sight), then upsert every candle on (asset, timeframe, date).
Failures are contained per row: an asset that cannot be resolved skips its
own candles, and a candle that cannot be written is logged and skipped
without touching rows already written.
"""

import aiosqlite

from ingest.data.store import CatalogStore
from ingest.exceptions import StorageError
from ingest.logging import get_logger
from ingest.models import StorageRecord

logger = get_logger(__name__)


class StoreWriter:
    """Persists StorageRecords into the catalog with upsert semantics.

    Args:
        store: Catalog store used for every read and write.
    """

    name = "store"

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def execute(self, records: list[StorageRecord]) -> bool:
        """Write all records and return True once the batch has been processed."""
        written = 0
        failed = 0
        skipped_assets = 0

        for record in records:
            asset_id = await self._resolve_asset_id(record)
            if not asset_id:
                skipped_assets += 1
                continue

            for candle in record.candles:
                try:
                    await self._store.upsert_candle(asset_id, candle)
                    written += 1
                except (StorageError, aiosqlite.Error) as e:
                    failed += 1
                    logger.error(
                        "candle_write_failed",
                        symbol=record.asset.symbol,
                        date=candle.date,
                        error=str(e),
                    )

        logger.info(
            "store_write_complete",
            records=len(records),
            candles_written=written,
            candles_failed=failed,
            assets_skipped=skipped_assets,
        )
        return True

    async def _resolve_asset_id(self, record: StorageRecord) -> str | None:
        """Return the catalog id for the record's asset, inserting it if new."""
        symbol = record.asset.symbol
        try:
            asset = await self._store.find_asset_by_symbol(symbol)
            if asset is not None:
                return asset.id
            return await self._store.insert_asset(record.asset)
        except (StorageError, aiosqlite.Error) as e:
            logger.error("asset_resolve_failed", symbol=symbol, error=str(e))
            return None
