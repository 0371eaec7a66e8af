"""Tests for metadata normalization."""

import pytest

from ingest.models import AssetMetadata, MarketSnapshot
from ingest.pipeline.normalizer import normalize_metadata, normalize_snapshot


def test_maps_provider_fields_and_uppercases_symbol(make_market_record):
    snapshot = MarketSnapshot(data=make_market_record(), history=[])

    record = normalize_snapshot(snapshot)

    assert record.asset == AssetMetadata(
        external_id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        active=True,
        source="coingecko",
    )
    assert record.raw is snapshot


def test_source_tag_is_configurable(make_market_record):
    snapshot = MarketSnapshot(data=make_market_record())

    record = normalize_snapshot(snapshot, source="other-feed")

    assert record.asset.source == "other-feed"


def test_malformed_fields_pass_through_unchanged():
    snapshot = MarketSnapshot(data={"id": 7, "symbol": None, "name": ""})

    record = normalize_snapshot(snapshot)

    assert record.asset.external_id == 7
    assert record.asset.symbol is None
    assert record.asset.name == ""


def test_non_string_symbol_is_not_coerced():
    snapshot = MarketSnapshot(data={"id": "x", "symbol": 42, "name": "X"})

    assert normalize_snapshot(snapshot).asset.symbol == 42


def test_missing_keys_do_not_raise():
    record = normalize_snapshot(MarketSnapshot(data={}))

    assert record.asset.symbol is None
    assert record.asset.name is None


@pytest.mark.parametrize("payload", [None, "bitcoin", ["bitcoin", "btc"]])
def test_non_mapping_payload_yields_empty_asset(payload):
    snapshot = MarketSnapshot(data=payload)  # type: ignore[arg-type]

    record = normalize_snapshot(snapshot)

    assert record.asset.external_id is None
    assert record.asset.symbol is None
    assert record.raw is snapshot


def test_preserves_order(make_market_record):
    snapshots = [
        MarketSnapshot(data=make_market_record("a", symbol="aa")),
        MarketSnapshot(data=make_market_record("b", symbol="bb")),
    ]

    records = normalize_metadata(snapshots)

    assert [r.asset.symbol for r in records] == ["AA", "BB"]
