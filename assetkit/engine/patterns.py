"""Reusable pipeline composition helpers.

These helpers are intentionally generic (no `asset_pipeline.*` dependencies) and
only produce `Pipeline` values; nothing here runs anything.
"""

from __future__ import annotations

from collections.abc import Sequence

from assetkit.engine.pipeline import PARALLEL, SEQUENTIAL, EdgeMode, Pipeline
from assetkit.stage_types import StageDescriptor


def _require_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise TypeError("name must be a non-empty string")
    return name.strip()


def single(stage: StageDescriptor, *, name: str | None = None, doc: str | None = None) -> Pipeline:
    """Pattern: a pipeline made of one stage, named after it by default."""

    return Pipeline(name=_require_name(name or stage.name), stages=(stage,), doc=doc or stage.doc)


def sequence(name: str, stages: Sequence[StageDescriptor], *, doc: str | None = None) -> Pipeline:
    """Pattern: every stage waits for the previous one."""

    stages = tuple(stages)
    return Pipeline(
        name=_require_name(name),
        stages=stages,
        edges=(SEQUENTIAL,) * max(len(stages) - 1, 0),
        doc=doc,
    )


def fanout(name: str, stages: Sequence[StageDescriptor], *, doc: str | None = None) -> Pipeline:
    """Pattern: independent stages with no ordering between them."""

    stages = tuple(stages)
    return Pipeline(
        name=_require_name(name),
        stages=stages,
        edges=(PARALLEL,) * max(len(stages) - 1, 0),
        doc=doc,
    )


def setup_then_fanout(
    name: str,
    *,
    setup: Sequence[StageDescriptor],
    fanout: Sequence[StageDescriptor],
    doc: str | None = None,
) -> Pipeline:
    """Pattern: run setup stages in order, then the rest concurrently."""

    setup = tuple(setup)
    rest = tuple(fanout)
    if not setup:
        raise ValueError("setup_then_fanout requires at least one setup stage")
    if not rest:
        raise ValueError("setup_then_fanout requires at least one fanout stage")

    edges: list[EdgeMode] = [SEQUENTIAL] * (len(setup) - 1)
    edges.append(SEQUENTIAL)
    edges.extend([PARALLEL] * (len(rest) - 1))
    return Pipeline(name=_require_name(name), stages=setup + rest, edges=tuple(edges), doc=doc)


def chain(name: str, pipelines: Sequence[Pipeline], *, doc: str | None = None) -> Pipeline:
    """Pattern: concatenate pipelines, each one gating the next."""

    pipelines = tuple(pipelines)
    if not pipelines:
        raise ValueError("chain requires at least one pipeline")

    stages: list[StageDescriptor] = []
    edges: list[EdgeMode] = []
    for idx, pipeline in enumerate(pipelines):
        if idx:
            edges.append(SEQUENTIAL)
        stages.extend(pipeline.stages)
        edges.extend(pipeline.edges)
    return Pipeline(name=_require_name(name), stages=tuple(stages), edges=tuple(edges), doc=doc)
