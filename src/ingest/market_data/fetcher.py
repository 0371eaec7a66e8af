"""Rate-limited fetch stage for market snapshots and historical OHLC series.

First stage of the ingestion pipeline. Pages through the market listing,
then requests the trailing OHLC series for each listed asset, one at a
time.

Failure policy:
- HTTP 429: retried with linear backoff (base_delay * attempt) up to
  max_retries attempts.
- Anything else (network, non-429 HTTP, malformed payload): not retried.
  The unit of work yields an empty list, so an empty result means
  "no data available", never "confirmed absence of data".
- Once one asset's history comes back empty, the remaining assets in the
  batch are recorded with empty history and no request is issued for them
  (skip_remaining_on_empty_history, on by default).
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from ingest.config import MarketDataSettings
from ingest.exceptions import MarketDataError, RateLimitExceeded
from ingest.logging import get_logger
from ingest.market_data.client import MarketDataClient
from ingest.models import MarketSnapshot

logger = get_logger(__name__)


class RateLimitedFetcher:
    """Fetches market snapshots and per-asset history with bounded retry.

    Usage:
        fetcher = RateLimitedFetcher(client, settings.market_data)
        snapshots = await fetcher.execute(None)
    """

    name = "fetch"

    def __init__(
        self,
        client: MarketDataClient,
        settings: MarketDataSettings,
    ) -> None:
        self._client = client
        self._settings = settings

    # ──────────────────────────────────────────────
    # Stage entry point
    # ──────────────────────────────────────────────

    async def execute(self, _input: Any = None) -> list[MarketSnapshot]:
        """Fetch all market pages, then attach each asset's history."""
        markets = await self.fetch_market_snapshots()
        return await self.attach_histories(markets)

    # ──────────────────────────────────────────────
    # Public fetch methods
    # ──────────────────────────────────────────────

    async def fetch_market_snapshots(self) -> list[dict]:
        """Fetch a fixed number of market pages, pausing before each request."""
        results: list[dict] = []

        for page in range(1, self._settings.pages + 1):
            # Rate limit safety delay between paginated calls
            await asyncio.sleep(self._settings.page_delay)

            batch = await self.fetch_with_retry(
                self._client.fetch_markets,
                page=page,
                per_page=self._settings.per_page,
            )
            records = [r for r in batch if isinstance(r, dict)]
            if len(records) != len(batch):
                logger.warning(
                    "malformed_market_records_dropped",
                    page=page,
                    dropped=len(batch) - len(records),
                )
            results.extend(records)
            logger.debug("market_page_fetched", page=page, records=len(records))

        logger.info(
            "market_snapshots_fetched",
            pages=self._settings.pages,
            records=len(results),
        )
        return results

    async def fetch_historical_series(self, coin_id: str) -> list[list]:
        """Fetch the trailing OHLC series for one asset."""
        return await self.fetch_with_retry(
            self._client.fetch_ohlc,
            coin_id,
            days=self._settings.history_days,
        )

    async def attach_histories(self, markets: list[dict]) -> list[MarketSnapshot]:
        """Fetch history for each market record sequentially.

        The skip flag is local to this call, so every run starts by
        requesting history again.
        """
        snapshots: list[MarketSnapshot] = []
        skip_remaining = False
        skipped = 0

        for i, record in enumerate(markets, 1):
            if skip_remaining:
                snapshots.append(MarketSnapshot(data=record, history=[]))
                skipped += 1
                continue

            history = await self.fetch_historical_series(record.get("id"))
            snapshots.append(MarketSnapshot(data=record, history=history))

            logger.debug(
                "historical_series_fetched",
                coin_id=record.get("id"),
                points=len(history),
                progress=f"{i}/{len(markets)}",
            )

            if not history and self._settings.skip_remaining_on_empty_history:
                skip_remaining = True
                logger.warning(
                    "empty_history_skipping_remaining",
                    coin_id=record.get("id"),
                    remaining=len(markets) - i,
                )

        logger.info(
            "historical_series_complete",
            assets=len(snapshots),
            skipped=skipped,
        )
        return snapshots

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    async def fetch_with_retry(
        self,
        fetch_fn: Callable[..., Awaitable[list]],
        *args: Any,
        **kwargs: Any,
    ) -> list:
        """Execute a fetch function, retrying only on rate limiting.

        Waits base_delay * attempt after each 429 (2s, 4s, 6s, 8s with the
        default base). Returns [] when retries run out or on any other
        market-data error.
        """
        max_retries = self._settings.max_retries
        base_delay = self._settings.retry_base_delay

        for attempt in range(1, max_retries + 1):
            try:
                return await fetch_fn(*args, **kwargs)
            except RateLimitExceeded:
                if attempt == max_retries:
                    break

                wait = base_delay * attempt
                logger.warning(
                    "rate_limit_exceeded",
                    attempt=attempt,
                    max_retries=max_retries,
                    delay=wait,
                )
                await asyncio.sleep(wait)
            except MarketDataError as e:
                logger.warning(
                    "fetch_failed_returning_empty",
                    error=str(e),
                    status=e.status,
                    attempt=attempt,
                )
                return []

        logger.error("rate_limit_retries_exhausted", attempts=max_retries)
        return []
