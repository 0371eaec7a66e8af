"""Abstract market-data client interface.

Defines the contract for all market-data providers. The fetcher depends
only on this interface, keeping CoinGecko-specific details isolated in
the concrete implementation.
"""

from abc import ABC, abstractmethod


class MarketDataClient(ABC):
    """Abstract base class for market-data API clients.

    Implementations raise RateLimitExceeded on HTTP 429 and MarketDataError
    for every other failure. They never retry: retry policy belongs to the
    fetcher.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying HTTP session."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP session."""
        ...

    @abstractmethod
    async def fetch_markets(self, page: int, per_page: int) -> list[dict]:
        """Fetch one page of market snapshots.

        Returns a list of asset summary dicts including id, symbol, name,
        current_price, market_cap, total_volume and last_updated.
        """
        ...

    @abstractmethod
    async def fetch_ohlc(self, coin_id: str, days: int) -> list[list]:
        """Fetch the trailing OHLC series for one asset.

        Returns a list of [timestamp_ms, open, high, low, close] tuples.
        """
        ...
