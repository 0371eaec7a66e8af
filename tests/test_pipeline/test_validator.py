"""Tests for metadata validation."""

import pytest

from ingest.models import MarketSnapshot
from ingest.pipeline.normalizer import normalize_snapshot
from ingest.pipeline.validator import is_complete, validate_metadata


def _normalized(record: dict):
    return normalize_snapshot(MarketSnapshot(data=record))


def test_complete_record_is_kept(make_market_record):
    records = [_normalized(make_market_record())]

    assert validate_metadata(records) == records


@pytest.mark.parametrize(
    "overrides",
    [
        {"symbol": None},
        {"symbol": ""},
        {"symbol": "   "},
        {"name": None},
        {"name": ""},
        {"current_price": None},
        {"current_price": ""},
        {"current_price": "   "},
        {"last_updated": None},
        {"last_updated": ""},
    ],
)
def test_incomplete_records_are_dropped(make_market_record, overrides):
    record = _normalized(make_market_record(**overrides))

    assert not is_complete(record)
    assert validate_metadata([record]) == []


def test_missing_price_key_is_dropped(make_market_record):
    raw = make_market_record()
    del raw["current_price"]

    assert validate_metadata([_normalized(raw)]) == []


def test_non_mapping_payload_is_dropped():
    record = normalize_snapshot(MarketSnapshot(data=None))  # type: ignore[arg-type]

    assert validate_metadata([record]) == []


def test_zero_price_counts_as_present(make_market_record):
    record = _normalized(make_market_record(current_price=0))

    assert is_complete(record)


def test_survivors_keep_input_order(make_market_record):
    records = [
        _normalized(make_market_record("a", symbol="a")),
        _normalized(make_market_record("b", symbol="b", name=None)),
        _normalized(make_market_record("c", symbol="c")),
    ]

    valid = validate_metadata(records)

    assert [r.asset.external_id for r in valid] == ["a", "c"]
