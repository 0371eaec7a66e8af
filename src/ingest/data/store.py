"""Typed SQLite read/write abstraction for the asset catalog and candles.

Provides CatalogStore with typed methods for inserting assets, upserting
candles on the (asset_id, timeframe, date) key, and querying the catalog
for the read API. All SQL is isolated behind this interface.

CRITICAL: All numeric values stored as TEXT in SQLite, restored as Decimal on read.
Every write commits on its own; there is no transaction spanning a batch.
Concurrent runs share one connection, so each write holds a lock across its
statement and its commit or rollback. A rollback can then only discard the
failing statement, never another run's uncommitted write.
"""

import asyncio
import time
import uuid
from decimal import Decimal

import aiosqlite

from ingest.data.database import CatalogDatabase
from ingest.data.query import Pagination, Search, build_search_clause
from ingest.exceptions import StorageError
from ingest.logging import get_logger
from ingest.models import Asset, AssetMetadata, Candle, CandleRecord, Timeframe

logger = get_logger(__name__)

_ASSET_COLUMNS = "a.id, a.external_id, a.symbol, a.name, a.active, a.source, a.created_at, a.updated_at"

_CANDLE_COLUMNS = (
    "c.id, c.asset_id, c.timeframe, c.date, c.open, c.high, c.low, c.close, "
    "c.volume, c.market_cap, c.liquidity, c.source, c.ingested_at"
)

# Always written on insert and overwritten on conflict
_CANDLE_VALUE_FIELDS = ("open", "high", "low", "close", "volume", "market_cap")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dec_to_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _text_to_dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _row_to_asset(row: tuple) -> Asset:
    return Asset(
        id=row[0],
        external_id=row[1],
        symbol=row[2],
        name=row[3],
        active=bool(row[4]),
        source=row[5],
        created_at=row[6],
        updated_at=row[7],
    )


def _row_to_candle(row: tuple) -> Candle:
    return Candle(
        id=row[0],
        asset_id=row[1],
        timeframe=Timeframe(row[2]),
        date=row[3],
        open=_text_to_dec(row[4]),
        high=_text_to_dec(row[5]),
        low=_text_to_dec(row[6]),
        close=_text_to_dec(row[7]),
        volume=_text_to_dec(row[8]),
        market_cap=_text_to_dec(row[9]),
        liquidity=_text_to_dec(row[10]),
        source=row[11],
        ingested_at=row[12],
    )


class CatalogStore:
    """Async SQLite store for assets and candles.

    Wraps CatalogDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with CatalogDatabase("data/market.db") as database:
            store = CatalogStore(database)
            asset = await store.find_asset_by_symbol("BTC")
    """

    def __init__(self, database: CatalogDatabase) -> None:
        self._database = database
        self._write_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_asset(self, asset: AssetMetadata) -> str | None:
        """Insert an asset unless its symbol or external id already exists.

        Returns the id of the row now holding `asset.symbol`, or None when
        the insert was swallowed by a conflict on external_id under a
        different symbol.
        """
        db = self._database.db
        now_ms = _now_ms()
        async with self._write_lock:
            try:
                await db.execute(
                    "INSERT OR IGNORE INTO assets "
                    "(id, external_id, symbol, name, active, source, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        str(uuid.uuid4()),
                        asset.external_id,
                        asset.symbol,
                        asset.name,
                        1 if asset.active else 0,
                        asset.source,
                        now_ms,
                        now_ms,
                    ),
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise StorageError(f"insert asset {asset.symbol!r} failed: {e}") from e

        existing = await self.find_asset_by_symbol(asset.symbol)
        if existing is None:
            logger.warning(
                "asset_insert_conflict",
                symbol=asset.symbol,
                external_id=asset.external_id,
            )
            return None

        logger.debug("asset_inserted", symbol=asset.symbol, asset_id=existing.id)
        return existing.id

    async def upsert_candle(self, asset_id: str, candle: CandleRecord) -> None:
        """Insert a candle or overwrite the numeric fields of the existing row.

        Keyed by (asset_id, timeframe, date). A None liquidity is left out of
        both the insert and the update, so an existing measurement is kept
        and a new row stores no value rather than an explicit null.
        """
        columns = ["id", "asset_id", "timeframe", "date", *_CANDLE_VALUE_FIELDS]
        values: list = [
            str(uuid.uuid4()),
            asset_id,
            Timeframe(candle.timeframe).value,
            candle.date,
            *(_dec_to_text(getattr(candle, f)) for f in _CANDLE_VALUE_FIELDS),
        ]
        updates = list(_CANDLE_VALUE_FIELDS)

        if candle.liquidity is not None:
            columns.append("liquidity")
            values.append(_dec_to_text(candle.liquidity))
            updates.append("liquidity")

        columns += ["source", "ingested_at"]
        values += [candle.source, _now_ms()]
        updates += ["source", "ingested_at"]

        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(f"{col} = excluded.{col}" for col in updates)

        db = self._database.db
        async with self._write_lock:
            try:
                await db.execute(
                    f"INSERT INTO candles ({', '.join(columns)}) VALUES ({placeholders}) "
                    f"ON CONFLICT (asset_id, timeframe, date) DO UPDATE SET {assignments}",
                    values,
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise StorageError(
                    f"upsert candle {asset_id}/{candle.timeframe}/{candle.date} failed: {e}"
                ) from e

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def find_asset_by_symbol(self, symbol: str) -> Asset | None:
        cursor = await self._database.db.execute(
            f"SELECT {_ASSET_COLUMNS} FROM assets a WHERE a.symbol = ?",
            (symbol,),
        )
        row = await cursor.fetchone()
        return _row_to_asset(row) if row is not None else None

    async def list_assets(
        self,
        pagination: Pagination,
        search: Search | None = None,
    ) -> tuple[list[Asset], int]:
        """Return one page of assets matching `search`, plus the total match count.

        Assets are ordered by creation time, then symbol.
        """
        where, params = build_search_clause(search)
        where_sql = f" WHERE {where}" if where else ""
        db = self._database.db

        cursor = await db.execute(
            f"SELECT COUNT(*) FROM assets a{where_sql}",
            params,
        )
        total = (await cursor.fetchone())[0]

        cursor = await db.execute(
            f"SELECT {_ASSET_COLUMNS} FROM assets a{where_sql} "
            f"ORDER BY a.created_at ASC, a.symbol ASC LIMIT ? OFFSET ?",
            [*params, pagination.limit, pagination.offset],
        )
        rows = await cursor.fetchall()
        return [_row_to_asset(row) for row in rows], total

    async def get_latest_candles(
        self,
        asset_ids: list[str],
        timeframe: Timeframe = Timeframe.DAILY,
    ) -> dict[str, Candle]:
        """Map each asset id to its most recent candle for `timeframe`.

        Assets without candles are absent from the result.
        """
        if not asset_ids:
            return {}

        placeholders = ", ".join("?" for _ in asset_ids)
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles c "
            f"WHERE c.timeframe = ? AND c.asset_id IN ({placeholders}) "
            f"AND c.date = ("
            f"  SELECT MAX(date) FROM candles "
            f"  WHERE asset_id = c.asset_id AND timeframe = c.timeframe"
            f")",
            [Timeframe(timeframe).value, *asset_ids],
        )
        rows = await cursor.fetchall()
        return {row[1]: _row_to_candle(row) for row in rows}

    async def get_candles(
        self,
        asset_id: str,
        timeframe: Timeframe = Timeframe.DAILY,
    ) -> list[Candle]:
        """Query candles for an asset and timeframe ordered by date ASC."""
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles c "
            f"WHERE c.asset_id = ? AND c.timeframe = ? ORDER BY c.date ASC",
            (asset_id, Timeframe(timeframe).value),
        )
        rows = await cursor.fetchall()
        return [_row_to_candle(row) for row in rows]

    async def get_last_candle(
        self,
        asset_id: str,
        timeframe: Timeframe = Timeframe.DAILY,
    ) -> Candle | None:
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles c "
            f"WHERE c.asset_id = ? AND c.timeframe = ? ORDER BY c.date DESC LIMIT 1",
            (asset_id, Timeframe(timeframe).value),
        )
        row = await cursor.fetchone()
        return _row_to_candle(row) if row is not None else None

    async def get_assets_without_candles(self) -> list[Asset]:
        """Return catalogued assets that have no candle rows in any timeframe."""
        cursor = await self._database.db.execute(
            f"SELECT {_ASSET_COLUMNS} FROM assets a "
            f"WHERE NOT EXISTS (SELECT 1 FROM candles c WHERE c.asset_id = a.id) "
            f"ORDER BY a.created_at ASC, a.symbol ASC"
        )
        rows = await cursor.fetchall()
        return [_row_to_asset(row) for row in rows]

    async def get_data_status(self) -> dict:
        """Get aggregate catalog status.

        Returns dict with total_assets, total_candles, earliest_date,
        latest_date and last_ingested_ms.
        """
        db = self._database.db

        cursor = await db.execute("SELECT COUNT(*) FROM assets")
        total_assets = (await cursor.fetchone())[0]

        cursor = await db.execute(
            "SELECT COUNT(*), MIN(date), MAX(date), MAX(ingested_at) FROM candles"
        )
        total_candles, earliest_date, latest_date, last_ingested_ms = await cursor.fetchone()

        return {
            "total_assets": total_assets,
            "total_candles": total_candles,
            "earliest_date": earliest_date,
            "latest_date": latest_date,
            "last_ingested_ms": last_ingested_ms,
        }
