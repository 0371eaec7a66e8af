"""Pipeline orchestrator -- runs an ordered list of stages once per call.

Each stage receives exactly the previous stage's output; the first stage
receives None. Stages are expected to contain their own partial failures.
Anything that escapes a stage is a defect: the run moves to FAILED and the
caller gets a PipelineFailed chained to the original exception.

Default stage order:
    fetch -> normalize -> validate -> map_series -> format -> store

No lock is held between runs. Concurrent runs are independent and only
meet at the store, where the candle upsert key keeps one row per
(asset, timeframe, date) and the last writer wins.
"""

from __future__ import annotations

import inspect
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Protocol

from ingest.config import AppSettings
from ingest.data.store import CatalogStore
from ingest.exceptions import PipelineFailed
from ingest.logging import bind_run_context, clear_run_context, get_logger
from ingest.market_data.client import MarketDataClient
from ingest.market_data.fetcher import RateLimitedFetcher
from ingest.models import Timeframe
from ingest.pipeline.formatter import format_for_storage
from ingest.pipeline.normalizer import normalize_metadata
from ingest.pipeline.series_mapper import map_to_ohlc
from ingest.pipeline.validator import validate_metadata
from ingest.pipeline.writer import StoreWriter

logger = get_logger(__name__)


class Stage(Protocol):
    """A single pipeline step: transforms the previous output into the next input."""

    name: str

    async def execute(self, data: Any) -> Any: ...


class FunctionStage:
    """Adapts a plain (sync or async) function into a Stage."""

    def __init__(self, name: str, fn: Callable[[Any], Any]) -> None:
        self.name = name
        self._fn = fn

    async def execute(self, data: Any) -> Any:
        result = self._fn(data)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"FunctionStage({self.name!r})"


class PipelineState(str, Enum):
    """Lifecycle of a single pipeline run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """Record of one invocation: state transitions, output and failure."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: PipelineState = PipelineState.IDLE
    started_at: float | None = None
    finished_at: float | None = None
    completed_stages: list[str] = field(default_factory=list)
    failed_stage: str | None = None
    error: BaseException | None = None
    output: Any = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class Pipeline:
    """Sequential runner over an explicit, ordered list of stages.

    Holds no per-run state: every call to run() or execute() creates a
    fresh PipelineRun, so the same instance is safe to invoke repeatedly.

    Usage:
        pipeline = build_ingestion_pipeline(client, store, settings)
        result = await pipeline.run()
    """

    def __init__(self, stages: list[Stage]) -> None:
        if not stages:
            raise ValueError("Pipeline needs at least one stage")
        self._stages = list(stages)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    async def execute(self) -> PipelineRun:
        """Run every stage once and return the finished run record.

        Never raises for stage failures; inspect `run.state` instead.
        """
        run = PipelineRun()
        bind_run_context(run.run_id)
        try:
            run.state = PipelineState.RUNNING
            run.started_at = time.monotonic()
            logger.info("pipeline_started", stages=self.stage_names)

            data: Any = None
            for stage in self._stages:
                stage_start = time.monotonic()
                try:
                    data = await stage.execute(data)
                except Exception as e:
                    run.state = PipelineState.FAILED
                    run.failed_stage = stage.name
                    run.error = e
                    run.finished_at = time.monotonic()
                    logger.exception(
                        "pipeline_failed",
                        stage=stage.name,
                        error=str(e),
                    )
                    return run

                run.completed_stages.append(stage.name)
                logger.debug(
                    "pipeline_stage_complete",
                    stage=stage.name,
                    duration_seconds=round(time.monotonic() - stage_start, 3),
                )

            run.output = data
            run.state = PipelineState.COMPLETED
            run.finished_at = time.monotonic()
            logger.info(
                "pipeline_completed",
                duration_seconds=round(run.duration_seconds or 0.0, 1),
            )
            return run
        finally:
            clear_run_context()

    async def run(self) -> Any:
        """Run the pipeline once and return the last stage's output.

        Raises PipelineFailed (chained to the stage's exception) on failure.
        """
        run = await self.execute()
        if run.state is PipelineState.FAILED:
            assert run.failed_stage is not None
            raise PipelineFailed(run.failed_stage, run) from run.error
        return run.output


def build_ingestion_pipeline(
    client: MarketDataClient,
    store: CatalogStore,
    settings: AppSettings,
) -> Pipeline:
    """Wire the default six-stage ingestion pipeline."""
    source = settings.pipeline.source_tag

    return Pipeline(
        [
            RateLimitedFetcher(client, settings.market_data),
            FunctionStage("normalize", partial(normalize_metadata, source=source)),
            FunctionStage("validate", validate_metadata),
            FunctionStage("map_series", partial(map_to_ohlc, timeframe=Timeframe.DAILY)),
            FunctionStage("format", format_for_storage),
            StoreWriter(store),
        ]
    )
