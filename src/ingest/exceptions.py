"""Custom exceptions for the market-data ingestion pipeline.

Fetch, storage and orchestration errors live here to avoid circular
imports between the market_data, data and pipeline packages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ingest.pipeline.orchestrator import PipelineRun


class IngestError(Exception):
    """Base exception for all ingestion errors."""


class MarketDataError(IngestError):
    """Raised when the market-data API is unreachable or returns an unusable response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitExceeded(MarketDataError):
    """Raised when the market-data API answers with HTTP 429."""

    def __init__(self, message: str = "rate limit exceeded") -> None:
        super().__init__(message, status=429)


class StorageError(IngestError):
    """Raised when a row cannot be written to or read from the store."""


class InvalidQueryError(IngestError):
    """Raised for malformed pagination or search parameters."""


class PipelineFailed(IngestError):
    """Raised when a pipeline stage fails with an unrecovered error.

    The original exception is chained as __cause__.
    """

    def __init__(self, stage: str, run: PipelineRun) -> None:
        super().__init__(f"pipeline stage '{stage}' failed")
        self.stage = stage
        self.run = run
