"""Market-data provider access: client contract, CoinGecko client and rate-limited fetcher."""

from ingest.market_data.client import MarketDataClient
from ingest.market_data.coingecko_client import CoinGeckoClient
from ingest.market_data.fetcher import RateLimitedFetcher

__all__ = [
    "CoinGeckoClient",
    "MarketDataClient",
    "RateLimitedFetcher",
]
