"""Ingestion pipeline stages and the sequential orchestrator."""

from ingest.pipeline.orchestrator import (
    FunctionStage,
    Pipeline,
    PipelineRun,
    PipelineState,
    Stage,
    build_ingestion_pipeline,
)

__all__ = [
    "FunctionStage",
    "Pipeline",
    "PipelineRun",
    "PipelineState",
    "Stage",
    "build_ingestion_pipeline",
]
