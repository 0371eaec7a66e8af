"""Metadata normalization stage.

Maps raw provider market records onto the canonical AssetMetadata shape.
Pure and total: malformed fields are passed through unchanged so the
validator can reject them.
"""

from ingest.models import AssetMetadata, MarketSnapshot, NormalizedRecord


def normalize_snapshot(snapshot: MarketSnapshot, source: str = "coingecko") -> NormalizedRecord:
    """Build a NormalizedRecord from one raw market snapshot.

    The symbol is upper-cased when it is a string; any other value is kept
    as-is. A snapshot whose payload is not a mapping yields an empty asset
    that the validator will drop.
    """
    data = snapshot.data if isinstance(snapshot.data, dict) else {}
    symbol = data.get("symbol")
    if isinstance(symbol, str):
        symbol = symbol.upper()

    return NormalizedRecord(
        asset=AssetMetadata(
            external_id=data.get("id"),
            symbol=symbol,
            name=data.get("name"),
            active=True,
            source=source,
        ),
        raw=snapshot,
    )


def normalize_metadata(
    snapshots: list[MarketSnapshot], source: str = "coingecko"
) -> list[NormalizedRecord]:
    """Normalize every snapshot, preserving input order."""
    return [normalize_snapshot(s, source) for s in snapshots]
