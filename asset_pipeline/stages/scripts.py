from __future__ import annotations

from dataclasses import replace

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from assetkit.engine.changes import destination_for
from asset_pipeline import tools
from asset_pipeline.framework.runtime import BuildInputs

KIND_ID = "scripts"
DEFAULT_OUTPUT_NAME = "main.min.js"


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    ns = options.reader(f"stages.{name}")
    entry = ns.get_str("entry", default="js/main.js")
    binary_path = ns.get_str("binary", default=None)

    if options.output_name is None:
        options = replace(options, output_name=DEFAULT_OUTPUT_NAME)

    source_glob = inputs.paths.source(*entry.split("/"))
    destination_root = inputs.paths.dist("js")

    async def _transform(sources: PathSet, opts: StageOptions) -> PathSet:
        binary = tools.require_binary("esbuild", explicit_path=binary_path, stage=name)
        written: list[str] = []
        for source in sources:
            output = destination_for(
                source,
                source_base=descriptor.source_base,
                destination_root=destination_root,
                output_name=opts.output_name,
            )
            written.extend(
                await tools.bundle_scripts(
                    source,
                    output=output,
                    binary=binary,
                    minify=opts.minify,
                    source_maps=opts.source_maps,
                )
            )
        return PathSet(written)

    descriptor = StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        dependencies=inputs.paths.source("js", "**", "*.js"),
        summary="Scripts task complete",
        tags=("compile",),
    )
    return descriptor


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Bundle the script entry point and its imports into one minified file.",
    source="asset_pipeline.tools.bundle_scripts",
    tags=("compile",),
)
