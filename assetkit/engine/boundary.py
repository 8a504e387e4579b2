"""Error boundary applied uniformly to every stage.

A raised error inside a transform becomes one or more RECOVERABLE
`FailureEvent`s delivered to the error sink; the boundary itself never
raises, so sibling stages and the watch loop keep going.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

from assetkit.errors import FileSystemError, TransformError
from assetkit.pathset import PathSet
from assetkit.stage_types import StageOptions, TransformFn

Severity = Literal["recoverable"]
FailureKind = Literal["transform", "filesystem", "internal"]
RECOVERABLE: Severity = "recoverable"


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class FailureEvent:
    stage: str
    message: str
    source_file: str | None = None
    line: int | None = None
    column: int | None = None
    kind: FailureKind = "transform"
    severity: Severity = RECOVERABLE
    created_at: str = field(default_factory=utc_now_iso8601)

    def location(self) -> str | None:
        if not self.source_file:
            return None
        parts = [self.source_file]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def describe(self) -> str:
        where = self.location()
        if where:
            return f"[{self.stage}] {where}: {self.message}"
        return f"[{self.stage}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "source_file": self.source_file,
            "line": self.line,
            "column": self.column,
            "kind": self.kind,
            "severity": self.severity,
            "created_at": self.created_at,
        }


class ErrorSink(Protocol):
    def notify_error(self, event: FailureEvent) -> None:
        ...


class NullErrorSink:
    def notify_error(self, event: FailureEvent) -> None:
        return


def failure_from_exception(stage: str, exc: BaseException) -> FailureEvent:
    if isinstance(exc, FileSystemError):
        return FailureEvent(
            stage=stage,
            message=exc.message,
            source_file=exc.file,
            line=exc.line,
            column=exc.column,
            kind="filesystem",
        )
    if isinstance(exc, TransformError):
        return FailureEvent(
            stage=stage,
            message=exc.message,
            source_file=exc.file,
            line=exc.line,
            column=exc.column,
        )
    if isinstance(exc, OSError):
        return FailureEvent(
            stage=stage,
            message=exc.strerror or str(exc),
            source_file=str(exc.filename) if exc.filename else None,
            kind="filesystem",
        )
    return FailureEvent(
        stage=stage,
        message=f"{type(exc).__name__}: {exc}",
        kind="internal",
    )


def _leaf_exceptions(exc: BaseException) -> list[BaseException]:
    if isinstance(exc, BaseExceptionGroup):
        leaves: list[BaseException] = []
        for inner in exc.exceptions:
            leaves.extend(_leaf_exceptions(inner))
        return leaves
    return [exc]


def _coerce_outputs(result: Any) -> PathSet:
    if isinstance(result, PathSet):
        return result
    if result is None:
        raise TypeError("Transform returned None; expected a PathSet of written outputs")
    if isinstance(result, (str, bytes)):
        raise TypeError("Transform returned a single string; expected a PathSet of written outputs")
    return PathSet(result)


async def invoke_transform(transform: TransformFn, inputs: PathSet, options: StageOptions) -> PathSet:
    """Run a transform on the event loop's terms.

    Coroutine functions are awaited; plain functions run in a worker thread so
    blocking file work does not stall other stages.
    """

    if inspect.iscoroutinefunction(transform) or inspect.iscoroutinefunction(
        getattr(transform, "__call__", None)
    ):
        result = await transform(inputs, options)
    else:
        result = await asyncio.to_thread(transform, inputs, options)
        if inspect.isawaitable(result):
            result = await result
    return _coerce_outputs(result)


class ErrorBoundary:
    def __init__(self, sink: ErrorSink | None = None, *, logger: logging.Logger | None = None):
        self._sink = sink or NullErrorSink()
        self._logger = logger or logging.getLogger(__name__)
        notify = getattr(self._sink, "notify_error", None)
        if notify is None or not callable(notify):
            raise TypeError("Error sink missing required method: notify_error")

    @property
    def sink(self) -> ErrorSink:
        return self._sink

    async def run(
        self,
        stage: str,
        transform: TransformFn,
        inputs: PathSet,
        options: StageOptions,
    ) -> tuple[PathSet | None, tuple[FailureEvent, ...]]:
        try:
            outputs = await invoke_transform(transform, inputs, options)
        except Exception as exc:
            return None, self.capture(stage, exc)
        return outputs, ()

    def capture(self, stage: str, exc: BaseException) -> tuple[FailureEvent, ...]:
        events: list[FailureEvent] = []
        for leaf in _leaf_exceptions(exc):
            event = failure_from_exception(stage, leaf)
            if event.kind == "internal":
                self._logger.error(
                    "Unexpected error in stage %s", stage, exc_info=(type(leaf), leaf, leaf.__traceback__)
                )
            self.deliver(event)
            events.append(event)
        return tuple(events)

    def deliver(self, event: FailureEvent) -> None:
        try:
            self._sink.notify_error(event)
        except Exception:
            self._logger.exception("Error sink failed while reporting %s", event.describe())
