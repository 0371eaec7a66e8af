"""Storage formatting stage: regroup mapped records for the writer."""

from ingest.models import MappedRecord, StorageRecord


def format_for_storage(records: list[MappedRecord]) -> list[StorageRecord]:
    """Drop the raw snapshot and keep {asset, candles} per record."""
    return [StorageRecord(asset=r.asset, candles=r.candles) for r in records]
