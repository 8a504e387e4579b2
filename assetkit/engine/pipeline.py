"""Pipeline composer: run named pipelines of stages.

A pipeline is an ordered list of stages with an explicit edge mode between
each adjacent pair. SEQUENTIAL edges split the pipeline into waves; stages
inside a wave run concurrently on the event loop and the next wave starts
only once every stage of the previous one has returned (success or recovered
failure). Failures never escape `PipelineRunner.run`.

This module is intentionally app-agnostic and must not import `asset_pipeline.*`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Protocol

from assetkit.engine.boundary import ErrorBoundary, ErrorSink, FailureEvent
from assetkit.engine.changes import (
    LOCAL_FS,
    ChangeRecord,
    FileSystem,
    check_changes,
    stale_sources,
)
from assetkit.errors import ConfigurationError
from assetkit.globbing import discover
from assetkit.pathset import PathSet
from assetkit.stage_registry import close_matches
from assetkit.stage_types import StageDescriptor

SkipReason = Literal["fresh"]
CompletionListener = Callable[[str], None]


class EdgeMode(str, enum.Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


SEQUENTIAL = EdgeMode.SEQUENTIAL
PARALLEL = EdgeMode.PARALLEL


@dataclass(frozen=True)
class Pipeline:
    name: str
    stages: tuple[StageDescriptor, ...]
    edges: tuple[EdgeMode, ...] = ()
    doc: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("Pipeline.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        stages = tuple(self.stages)
        if not stages:
            raise ValueError(f"Pipeline {self.name} must contain at least one stage")
        for stage in stages:
            if not isinstance(stage, StageDescriptor):
                raise TypeError(
                    f"Pipeline {self.name} stages must be StageDescriptor (type={type(stage).__name__})"
                )
        object.__setattr__(self, "stages", stages)

        edges = tuple(EdgeMode(edge) for edge in self.edges)
        if len(edges) != len(stages) - 1:
            raise ValueError(
                f"Pipeline {self.name} needs {len(stages) - 1} edge(s) for {len(stages)} stage(s) "
                f"(got {len(edges)})"
            )
        object.__setattr__(self, "edges", edges)

        seen: set[str] = set()
        duplicates: set[str] = set()
        for stage in stages:
            if stage.name in seen:
                duplicates.add(stage.name)
            seen.add(stage.name)
        if duplicates:
            raise ValueError(
                f"Duplicate stage name(s) in pipeline {self.name}: {', '.join(sorted(duplicates))}"
            )

        owners: dict[tuple[Any, ...], str] = {}
        for stage in stages:
            if stage.source_glob is None:
                continue
            key = stage.output_key()
            if key in owners:
                raise ValueError(
                    f"Stages {owners[key]} and {stage.name} in pipeline {self.name} "
                    "write the same destination outputs"
                )
            owners[key] = stage.name

    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def stage(self, name: str) -> StageDescriptor:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def waves(self) -> tuple[tuple[StageDescriptor, ...], ...]:
        groups: list[list[StageDescriptor]] = [[self.stages[0]]]
        for edge, stage in zip(self.edges, self.stages[1:], strict=True):
            if edge is EdgeMode.SEQUENTIAL:
                groups.append([stage])
            else:
                groups[-1].append(stage)
        return tuple(tuple(group) for group in groups)

    def describe(self) -> dict[str, Any]:
        return {
            "pipeline": self.name,
            "doc": self.doc,
            "stages": list(self.stage_names()),
            "edges": [edge.value for edge in self.edges],
            "waves": [[stage.name for stage in wave] for wave in self.waves()],
        }


@dataclass(frozen=True)
class StageResult:
    name: str
    ran: bool
    skipped_reason: SkipReason | None = None
    failures: tuple[FailureEvent, ...] = ()
    inputs: PathSet = field(default_factory=PathSet)
    outputs: PathSet = field(default_factory=PathSet)
    changes: tuple[ChangeRecord, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ran": self.ran,
            "skipped_reason": self.skipped_reason,
            "failures": [event.to_dict() for event in self.failures],
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
        }


@dataclass(frozen=True)
class PipelineResult:
    pipeline: str
    stages: tuple[StageResult, ...]

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.stages)

    @property
    def failures(self) -> tuple[FailureEvent, ...]:
        return tuple(event for result in self.stages for event in result.failures)

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.name == name:
                return result
        raise KeyError(name)

    def ran(self) -> tuple[str, ...]:
        return tuple(result.name for result in self.stages if result.ran)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pipeline": self.pipeline,
            "ok": self.ok,
            "stages": [result.to_dict() for result in self.stages],
        }


@dataclass(frozen=True)
class PipelineRegistry:
    _by_name: dict[str, Pipeline]

    @classmethod
    def from_pipelines(cls, pipelines: Iterable[Pipeline]) -> "PipelineRegistry":
        entries: dict[str, Pipeline] = {}
        for pipeline in pipelines:
            if pipeline.name in entries:
                raise ValueError(f"Duplicate pipeline name: {pipeline.name}")
            entries[pipeline.name] = pipeline
        return cls(_by_name=entries)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_name.keys()))

    def describe(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._by_name[name].describe() for name in self.available())

    def suggest(self, name: str, *, limit: int = 3) -> tuple[str, ...]:
        return close_matches(name, self.available(), limit=limit)

    def get(self, name: str) -> Pipeline:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError("pipeline name must be a non-empty string")
        pipeline = self._by_name.get(name.strip())
        if pipeline is not None:
            return pipeline

        suggestions = self.suggest(name)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        available = ", ".join(self.available()) or "<none>"
        raise ConfigurationError(f"Unknown pipeline: {name}{hint} (available: {available})")


class StageRecorder(Protocol):
    def on_stage_start(self, pipeline: str, stage: StageDescriptor, **metrics: Any) -> None:
        ...

    def on_stage_end(self, pipeline: str, result: StageResult) -> None:
        ...

    def on_stage_error(self, pipeline: str, event: FailureEvent) -> None:
        ...


class DefaultStageRecorder:
    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)

    def on_stage_start(self, pipeline: str, stage: StageDescriptor, **metrics: Any) -> None:
        tokens: list[str] = []
        if stage.source_glob:
            tokens.append(f"src={stage.source_glob}")
        tokens.append(f"dest={stage.destination_root}")
        self._logger.info("Stage: %s/%s (%s)", pipeline, stage.name, ", ".join(tokens))

    def on_stage_end(self, pipeline: str, result: StageResult) -> None:
        path = f"{pipeline}/{result.name}"
        if not result.ran:
            self._logger.info("Skipped %s (%s)", path, result.skipped_reason or "failed before transform")
            return
        if result.failures:
            self._logger.warning(
                "Completed %s with %d failure(s) (inputs=%d, outputs=%d)",
                path,
                len(result.failures),
                len(result.inputs),
                len(result.outputs),
            )
            return
        self._logger.info(
            "Completed %s (inputs=%d, outputs=%d)", path, len(result.inputs), len(result.outputs)
        )

    def on_stage_error(self, pipeline: str, event: FailureEvent) -> None:
        self._logger.error("Stage failed: %s/%s", pipeline, event.describe())


class NullStageRecorder:
    def on_stage_start(self, pipeline: str, stage: StageDescriptor, **metrics: Any) -> None:
        return

    def on_stage_end(self, pipeline: str, result: StageResult) -> None:
        return

    def on_stage_error(self, pipeline: str, event: FailureEvent) -> None:
        return


class PipelineRunner:
    def __init__(
        self,
        pipelines: PipelineRegistry | Iterable[Pipeline],
        *,
        fs: FileSystem | None = None,
        sink: ErrorSink | None = None,
        recorder: StageRecorder | None = None,
        listeners: Iterable[CompletionListener] = (),
        logger: logging.Logger | None = None,
    ):
        if not isinstance(pipelines, PipelineRegistry):
            pipelines = PipelineRegistry.from_pipelines(pipelines)
        self._registry = pipelines
        self._fs = fs or LOCAL_FS
        self._logger = logger or logging.getLogger(__name__)
        self._boundary = ErrorBoundary(sink, logger=self._logger)
        self._recorder = recorder or DefaultStageRecorder(self._logger)
        self._validate_recorder(self._recorder)
        self._listeners: list[CompletionListener] = list(listeners)

    @property
    def registry(self) -> PipelineRegistry:
        return self._registry

    @property
    def boundary(self) -> ErrorBoundary:
        return self._boundary

    def add_listener(self, listener: CompletionListener) -> None:
        if not callable(listener):
            raise TypeError(f"Completion listener must be callable (type={type(listener).__name__})")
        self._listeners.append(listener)

    def resolve(self, pipeline: str | Pipeline) -> Pipeline:
        if isinstance(pipeline, Pipeline):
            return pipeline
        return self._registry.get(pipeline)

    async def run(self, pipeline: str | Pipeline) -> PipelineResult:
        target = self.resolve(pipeline)
        self._logger.info(
            "Pipeline %s started (%s)",
            target.name,
            " -> ".join("[" + ", ".join(s.name for s in wave) + "]" for wave in target.waves()),
        )

        claimed: dict[str, str] = {}
        by_name: dict[str, StageResult] = {}
        for wave in target.waves():
            results = await asyncio.gather(
                *(self._run_stage(target.name, stage, claimed) for stage in wave)
            )
            for result in results:
                by_name[result.name] = result

        outcome = PipelineResult(
            pipeline=target.name,
            stages=tuple(by_name[name] for name in target.stage_names()),
        )
        self._logger.info(
            "Pipeline %s finished (ran=%d, skipped=%d, failures=%d)",
            target.name,
            len(outcome.ran()),
            len(outcome.stages) - len(outcome.ran()),
            len(outcome.failures),
        )
        return outcome

    def run_sync(self, pipeline: str | Pipeline) -> PipelineResult:
        return asyncio.run(self.run(pipeline))

    def _validate_recorder(self, recorder: StageRecorder) -> None:
        required = ("on_stage_start", "on_stage_end", "on_stage_error")
        for name in required:
            method = getattr(recorder, name, None)
            if method is None or not callable(method):
                raise TypeError(f"Stage recorder missing required method: {name}")

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        try:
            getattr(self._recorder, method)(*args, **kwargs)
        except Exception:
            self._logger.exception("Stage recorder failed in %s", method)

    def _notify_listeners(self, summary: str) -> None:
        for listener in self._listeners:
            try:
                listener(summary)
            except Exception:
                self._logger.exception("Completion listener failed for %r", summary)

    def _select_inputs(self, stage: StageDescriptor) -> tuple[PathSet, tuple[ChangeRecord, ...]]:
        if stage.source_glob is None:
            return PathSet(), ()

        discovered = discover(stage.source_glob, ignore=stage.ignore)
        if not stage.check_changes:
            return discovered, ()

        dependencies = discover(stage.dependencies) if stage.dependencies else PathSet()
        changes = check_changes(
            discovered,
            destination_root=stage.destination_root,
            source_base=stage.source_base,
            output_name=stage.options.output_name,
            output_suffix=stage.output_suffix,
            dependencies=dependencies,
            fs=self._fs,
        )
        return stale_sources(changes), changes

    def _verify_outputs(
        self, stage: StageDescriptor, outputs: PathSet, claimed: dict[str, str]
    ) -> list[FailureEvent]:
        problems: list[FailureEvent] = []
        for path in outputs:
            if not self._fs.exists(path):
                problems.append(
                    FailureEvent(
                        stage=stage.name,
                        message="Transform reported an output that does not exist",
                        source_file=path,
                        kind="filesystem",
                    )
                )
                continue
            key = os.path.normcase(os.path.abspath(path))
            owner = claimed.setdefault(key, stage.name)
            if owner != stage.name:
                problems.append(
                    FailureEvent(
                        stage=stage.name,
                        message=f"Output already written by stage {owner} in this run",
                        source_file=path,
                        kind="filesystem",
                    )
                )
        for event in problems:
            self._boundary.deliver(event)
        return problems

    async def _run_stage(
        self, pipeline: str, stage: StageDescriptor, claimed: dict[str, str]
    ) -> StageResult:
        self._record("on_stage_start", pipeline, stage)

        try:
            inputs, changes = await asyncio.to_thread(self._select_inputs, stage)
        except Exception as exc:
            failures = self._boundary.capture(stage.name, exc)
            result = StageResult(name=stage.name, ran=False, failures=failures)
            for event in failures:
                self._record("on_stage_error", pipeline, event)
            self._record("on_stage_end", pipeline, result)
            return result

        if stage.check_changes and not inputs:
            result = StageResult(name=stage.name, ran=False, skipped_reason="fresh", changes=changes)
            self._record("on_stage_end", pipeline, result)
            return result

        outputs, failures = await self._boundary.run(stage.name, stage.transform, inputs, stage.options)
        problems = list(failures)
        if outputs is not None:
            problems.extend(self._verify_outputs(stage, outputs, claimed))

        result = StageResult(
            name=stage.name,
            ran=True,
            failures=tuple(problems),
            inputs=inputs,
            outputs=outputs if outputs is not None else PathSet(),
            changes=changes,
        )
        for event in result.failures:
            self._record("on_stage_error", pipeline, event)
        self._record("on_stage_end", pipeline, result)
        if result.ok:
            self._notify_listeners(stage.completion_message())
        return result
