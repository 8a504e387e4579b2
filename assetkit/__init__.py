"""Reusable asset-build kernel (engine primitives + stage authoring kit).

This package is intentionally independent of `asset_pipeline.*`. Concrete
transforms, tool adapters, error sinks and reload notifiers live in the
consuming application.
"""

from assetkit.option_reader import OptionReader
from assetkit.engine import (
    PARALLEL,
    SEQUENTIAL,
    BindingState,
    EdgeMode,
    ErrorBoundary,
    FailureEvent,
    Pipeline,
    PipelineRegistry,
    PipelineResult,
    PipelineRunner,
    StageResult,
    WatchBinding,
    WatchDispatcher,
    is_stale,
)
from assetkit.errors import ConfigurationError, FileSystemError, TransformError
from assetkit.pathset import PathSet
from assetkit.stage_registry import StageRegistry
from assetkit.stage_types import StageBuilder, StageDescriptor, StageOptions, StageRef

__all__ = [
    "PARALLEL",
    "SEQUENTIAL",
    "BindingState",
    "OptionReader",
    "ConfigurationError",
    "EdgeMode",
    "ErrorBoundary",
    "FailureEvent",
    "FileSystemError",
    "PathSet",
    "Pipeline",
    "PipelineRegistry",
    "PipelineResult",
    "PipelineRunner",
    "StageBuilder",
    "StageDescriptor",
    "StageOptions",
    "StageRef",
    "StageRegistry",
    "StageResult",
    "TransformError",
    "WatchBinding",
    "WatchDispatcher",
    "is_stale",
]
