"""Engine primitives: change filter, error boundary, pipeline composer, watch dispatcher."""

from assetkit.engine.boundary import (
    RECOVERABLE,
    ErrorBoundary,
    ErrorSink,
    FailureEvent,
    NullErrorSink,
    utc_now_iso8601,
)
from assetkit.engine.changes import (
    ChangeRecord,
    FileSystem,
    Freshness,
    LocalFileSystem,
    check_changes,
    destination_for,
    is_stale,
)
from assetkit.engine.patterns import chain, fanout, sequence, setup_then_fanout, single
from assetkit.engine.pipeline import (
    PARALLEL,
    SEQUENTIAL,
    DefaultStageRecorder,
    EdgeMode,
    NullStageRecorder,
    Pipeline,
    PipelineRegistry,
    PipelineResult,
    PipelineRunner,
    StageRecorder,
    StageResult,
)
from assetkit.engine.watch import BindingState, FileSystemWatcher, WatchBinding, WatchDispatcher

__all__ = [
    "PARALLEL",
    "RECOVERABLE",
    "SEQUENTIAL",
    "BindingState",
    "ChangeRecord",
    "DefaultStageRecorder",
    "EdgeMode",
    "ErrorBoundary",
    "ErrorSink",
    "FailureEvent",
    "FileSystem",
    "FileSystemWatcher",
    "Freshness",
    "LocalFileSystem",
    "NullErrorSink",
    "NullStageRecorder",
    "Pipeline",
    "PipelineRegistry",
    "PipelineResult",
    "PipelineRunner",
    "StageRecorder",
    "StageResult",
    "WatchBinding",
    "WatchDispatcher",
    "chain",
    "check_changes",
    "destination_for",
    "fanout",
    "is_stale",
    "sequence",
    "setup_then_fanout",
    "single",
    "utc_now_iso8601",
]
