"""Metadata validation stage.

Keeps only records complete enough to be catalogued. Failing records are
dropped silently; the run continues with whatever survives.
"""

from ingest.logging import get_logger
from ingest.models import NormalizedRecord

logger = get_logger(__name__)


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def is_complete(record: NormalizedRecord) -> bool:
    """Return True when symbol, name, current price and last-updated are present.

    A current price of 0 counts as present; only a missing or blank price fails.
    """
    raw = record.raw.data if isinstance(record.raw.data, dict) else {}
    return not (
        _is_blank(record.asset.symbol)
        or _is_blank(record.asset.name)
        or _is_blank(raw.get("current_price"))
        or _is_blank(raw.get("last_updated"))
    )


def validate_metadata(records: list[NormalizedRecord]) -> list[NormalizedRecord]:
    """Filter records down to the complete subset, preserving order."""
    valid = [r for r in records if is_complete(r)]
    logger.info(
        "metadata_validated",
        total=len(records),
        valid=len(valid),
        dropped=len(records) - len(valid),
    )
    return valid
