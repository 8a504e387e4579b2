from __future__ import annotations

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages._shared import copy_files

KIND_ID = "fonts"


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    source_glob = inputs.paths.source("fonts", "**", "*")
    destination_root = inputs.paths.dist("fonts")

    def _transform(sources: PathSet, _options: StageOptions) -> PathSet:
        return copy_files(
            sources, source_base=inputs.paths.source("fonts"), destination_root=destination_root
        )

    return StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        summary="Fonts task complete",
        tags=("content",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Copy changed font files.",
    source="asset_pipeline.stages._shared.copy_files",
    tags=("content",),
)
