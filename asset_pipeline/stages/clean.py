from __future__ import annotations

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from assetkit.engine.changes import LOCAL_FS
from asset_pipeline.framework.runtime import BuildInputs

KIND_ID = "clean"


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    dist_dir = inputs.paths.dist_dir

    def _transform(_sources: PathSet, _options: StageOptions) -> PathSet:
        if not LOCAL_FS.exists(dist_dir):
            inputs.logger.info("Nothing to delete: %s does not exist", dist_dir)
            return PathSet()
        LOCAL_FS.remove(dist_dir)
        inputs.logger.info("Deleted files and folders:\n%s", dist_dir)
        return PathSet()

    return StageDescriptor(
        name=name,
        source_glob=None,
        destination_root=dist_dir,
        transform=_transform,
        options=options,
        summary="Clean task complete",
        tags=("setup",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Delete the whole destination tree.",
    source="assetkit.engine.changes.LocalFileSystem.remove",
    tags=("setup",),
)
