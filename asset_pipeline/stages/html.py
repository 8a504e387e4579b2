from __future__ import annotations

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages._shared import copy_files

KIND_ID = "html"


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    source_glob = inputs.paths.source("*.html")
    destination_root = inputs.paths.dist()

    def _transform(sources: PathSet, _options: StageOptions) -> PathSet:
        return copy_files(sources, source_base=inputs.paths.app_dir, destination_root=destination_root)

    return StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        summary="Html task complete",
        tags=("markup",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Copy changed html pages to the destination root.",
    source="asset_pipeline.stages._shared.copy_files",
    tags=("markup",),
)
