"""Tests for RateLimitedFetcher.

Covers linear 429 backoff, the no-retry policy for other errors, market
pagination with inter-page delay, and the skip-remaining-history policy.
All tests use a mocked MarketDataClient and a patched asyncio.sleep.
"""

from unittest.mock import AsyncMock, call, patch

import pytest

from ingest.config import MarketDataSettings
from ingest.exceptions import MarketDataError, RateLimitExceeded
from ingest.market_data.client import MarketDataClient
from ingest.market_data.fetcher import RateLimitedFetcher
from ingest.models import MarketSnapshot

SLEEP_PATH = "ingest.market_data.fetcher.asyncio.sleep"

OHLC = [[1704067200000, 42000, 43000, 41000, 42500]]


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock(spec=MarketDataClient)


@pytest.fixture
def fetcher(client: AsyncMock, market_settings: MarketDataSettings) -> RateLimitedFetcher:
    return RateLimitedFetcher(client, market_settings)


class TestFetchWithRetry:
    @pytest.mark.asyncio
    async def test_returns_payload_after_two_rate_limits(self, fetcher, market_settings):
        fn = AsyncMock(side_effect=[RateLimitExceeded(), RateLimitExceeded(), ["ok"]])

        with patch(SLEEP_PATH, new_callable=AsyncMock) as sleep:
            result = await fetcher.fetch_with_retry(fn)

        assert result == ["ok"]
        assert fn.await_count == 3
        base = market_settings.retry_base_delay
        assert sleep.await_args_list == [call(base * 1), call(base * 2)]
        assert sum(c.args[0] for c in sleep.await_args_list) >= base * 1 + base * 2

    @pytest.mark.asyncio
    async def test_backoff_is_linear_in_attempt(self, client):
        settings = MarketDataSettings(retry_base_delay=2.0, max_retries=5, page_delay=0.0)
        fetcher = RateLimitedFetcher(client, settings)
        fn = AsyncMock(side_effect=[RateLimitExceeded()] * 4 + [[1]])

        with patch(SLEEP_PATH, new_callable=AsyncMock) as sleep:
            result = await fetcher.fetch_with_retry(fn)

        assert result == [1]
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0, 6.0, 8.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, fetcher, market_settings):
        fn = AsyncMock(side_effect=RateLimitExceeded())

        with patch(SLEEP_PATH, new_callable=AsyncMock):
            result = await fetcher.fetch_with_retry(fn)

        assert result == []
        assert fn.await_count == market_settings.max_retries

    @pytest.mark.asyncio
    async def test_non_rate_limit_error_is_not_retried(self, fetcher):
        fn = AsyncMock(side_effect=MarketDataError("HTTP 500", status=500))

        with patch(SLEEP_PATH, new_callable=AsyncMock) as sleep:
            result = await fetcher.fetch_with_retry(fn)

        assert result == []
        assert fn.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self, fetcher):
        fn = AsyncMock(return_value=[])

        await fetcher.fetch_with_retry(fn, "bitcoin", days=365)

        fn.assert_awaited_once_with("bitcoin", days=365)


class TestMarketSnapshots:
    @pytest.mark.asyncio
    async def test_fetches_every_page_with_delay(self, client, make_market_record):
        settings = MarketDataSettings(pages=3, per_page=2, page_delay=1.2)
        fetcher = RateLimitedFetcher(client, settings)
        client.fetch_markets.side_effect = [
            [make_market_record("a"), make_market_record("b")],
            [make_market_record("c")],
            [],
        ]

        with patch(SLEEP_PATH, new_callable=AsyncMock) as sleep:
            results = await fetcher.fetch_market_snapshots()

        assert [r["id"] for r in results] == ["a", "b", "c"]
        assert client.fetch_markets.await_args_list == [
            call(page=1, per_page=2),
            call(page=2, per_page=2),
            call(page=3, per_page=2),
        ]
        assert sleep.await_args_list == [call(1.2)] * 3

    @pytest.mark.asyncio
    async def test_failed_page_contributes_nothing(self, client, make_market_record):
        settings = MarketDataSettings(pages=2, page_delay=0.0)
        fetcher = RateLimitedFetcher(client, settings)
        client.fetch_markets.side_effect = [
            MarketDataError("timeout"),
            [make_market_record("eth")],
        ]

        with patch(SLEEP_PATH, new_callable=AsyncMock):
            results = await fetcher.fetch_market_snapshots()

        assert [r["id"] for r in results] == ["eth"]

    @pytest.mark.asyncio
    async def test_non_mapping_records_are_dropped(self, fetcher, client, make_market_record):
        client.fetch_markets.return_value = [make_market_record("a"), None, "b", ["c"]]

        with patch(SLEEP_PATH, new_callable=AsyncMock):
            results = await fetcher.fetch_market_snapshots()

        assert [r["id"] for r in results] == ["a"]


class TestHistories:
    @pytest.mark.asyncio
    async def test_skips_remaining_after_empty_history(self, fetcher, client, make_market_record):
        markets = [make_market_record(f"coin-{i}") for i in range(1, 6)]
        client.fetch_ohlc.side_effect = [OHLC, OHLC, []]

        with patch(SLEEP_PATH, new_callable=AsyncMock):
            snapshots = await fetcher.attach_histories(markets)

        assert client.fetch_ohlc.await_count == 3
        requested = [c.args[0] for c in client.fetch_ohlc.await_args_list]
        assert requested == ["coin-1", "coin-2", "coin-3"]
        assert [len(s.history) for s in snapshots] == [1, 1, 0, 0, 0]
        assert [s.data["id"] for s in snapshots] == [m["id"] for m in markets]

    @pytest.mark.asyncio
    async def test_skip_policy_can_be_disabled(self, client, make_market_record):
        settings = MarketDataSettings(skip_remaining_on_empty_history=False)
        fetcher = RateLimitedFetcher(client, settings)
        markets = [make_market_record(f"coin-{i}") for i in range(1, 6)]
        client.fetch_ohlc.side_effect = [OHLC, OHLC, [], OHLC, OHLC]

        snapshots = await fetcher.attach_histories(markets)

        assert client.fetch_ohlc.await_count == 5
        assert [len(s.history) for s in snapshots] == [1, 1, 0, 1, 1]

    @pytest.mark.asyncio
    async def test_failed_history_counts_as_empty(self, fetcher, client, make_market_record):
        markets = [make_market_record("a"), make_market_record("b")]
        client.fetch_ohlc.side_effect = MarketDataError("HTTP 404", status=404)

        snapshots = await fetcher.attach_histories(markets)

        assert client.fetch_ohlc.await_count == 1
        assert all(s.history == [] for s in snapshots)

    @pytest.mark.asyncio
    async def test_skip_state_does_not_leak_between_runs(self, fetcher, client, make_market_record):
        markets = [make_market_record("a"), make_market_record("b")]
        client.fetch_ohlc.side_effect = [[], OHLC, OHLC]

        first = await fetcher.attach_histories(markets)
        second = await fetcher.attach_histories(markets)

        assert [len(s.history) for s in first] == [0, 0]
        assert [len(s.history) for s in second] == [1, 1]

    @pytest.mark.asyncio
    async def test_history_requested_with_configured_window(self, fetcher, client):
        client.fetch_ohlc.return_value = OHLC

        await fetcher.fetch_historical_series("bitcoin")

        client.fetch_ohlc.assert_awaited_once_with("bitcoin", days=365)


class TestExecute:
    @pytest.mark.asyncio
    async def test_execute_ignores_input_and_returns_snapshots(
        self, fetcher, client, make_market_record
    ):
        client.fetch_markets.return_value = [make_market_record()]
        client.fetch_ohlc.return_value = OHLC

        with patch(SLEEP_PATH, new_callable=AsyncMock):
            snapshots = await fetcher.execute(None)

        assert snapshots == [MarketSnapshot(data=make_market_record(), history=OHLC)]
