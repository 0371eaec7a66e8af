"""CoinGecko market-data client implementation via aiohttp.

Wraps the public /coins/markets and /coins/{id}/ohlc endpoints. Translates
HTTP 429 into RateLimitExceeded and every other transport or payload
failure into MarketDataError, so the fetcher only has to reason about
those two classes.
"""

import asyncio
from typing import Any, Self

import aiohttp

from ingest.config import MarketDataSettings
from ingest.exceptions import MarketDataError, RateLimitExceeded
from ingest.logging import get_logger
from ingest.market_data.client import MarketDataClient

logger = get_logger(__name__)


class CoinGeckoClient(MarketDataClient):
    """Concrete CoinGecko client using an aiohttp session.

    Usage:
        async with CoinGeckoClient(settings.market_data) as client:
            page = await client.fetch_markets(page=1, per_page=250)
    """

    def __init__(self, settings: MarketDataSettings) -> None:
        self._settings = settings
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Access the open aiohttp session.

        Raises RuntimeError if not connected.
        """
        if self._session is None:
            raise RuntimeError("Client not connected. Call connect() first.")
        return self._session

    async def connect(self) -> None:
        """Open the HTTP session with JSON headers and the configured timeout."""
        if self._session is not None:
            return

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        api_key = self._settings.api_key.get_secret_value()
        if api_key:
            headers["x-cg-demo-api-key"] = api_key

        timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout)
        self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)
        logger.info("coingecko_client_connected", base_url=self._settings.base_url)

    async def close(self) -> None:
        """Close the HTTP session if open."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.info("coingecko_client_closed")

    async def fetch_markets(self, page: int, per_page: int) -> list[dict]:
        """Fetch one page of market snapshots ordered by market cap."""
        data = await self._get(
            "/coins/markets",
            {
                "vs_currency": self._settings.vs_currency,
                "order": self._settings.order,
                "per_page": per_page,
                "page": page,
            },
        )
        if not isinstance(data, list):
            raise MarketDataError(f"unexpected markets payload: {type(data).__name__}")
        return data

    async def fetch_ohlc(self, coin_id: str, days: int) -> list[list]:
        """Fetch the OHLC series for a coin over the trailing `days` window."""
        data = await self._get(
            f"/coins/{coin_id}/ohlc",
            {
                "vs_currency": self._settings.vs_currency,
                "days": days,
                "precision": "full",
            },
        )
        if not isinstance(data, list):
            raise MarketDataError(f"unexpected ohlc payload: {type(data).__name__}")
        return data

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        """Issue a GET and decode the JSON body, classifying failures."""
        url = f"{self._settings.base_url}{path}"
        try:
            async with self.session.get(url, params=params) as resp:
                if resp.status == 429:
                    raise RateLimitExceeded(f"HTTP 429 from {path}")
                if resp.status >= 400:
                    body = await resp.text()
                    logger.warning(
                        "market_data_http_error",
                        path=path,
                        status=resp.status,
                        body=body[:200],
                    )
                    raise MarketDataError(
                        f"HTTP {resp.status} from {path}", status=resp.status
                    )
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ContentTypeError is a ClientError; JSON decode errors are ValueError
            raise MarketDataError(f"GET {path} failed: {e}") from e

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
