from __future__ import annotations

import os
import shutil
from dataclasses import replace

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from assetkit.engine.changes import destination_for
from asset_pipeline import tools
from asset_pipeline.framework.runtime import BuildInputs

KIND_ID = "styles"
DEFAULT_OUTPUT_NAME = "main.min.css"


def _mirror(outputs: list[str], destination_root: str, mirror_root: str) -> None:
    """Keep a second copy of the compiled stylesheet next to the sources."""

    for output in outputs:
        target = os.path.join(mirror_root, os.path.relpath(output, destination_root))
        os.makedirs(os.path.dirname(target), exist_ok=True)
        shutil.copy2(output, target)


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    ns = options.reader(f"stages.{name}")
    entry = ns.get_str("entry", default="scss/main.scss")
    binary_path = ns.get_str("binary", default=None)
    mirror = ns.get_str("mirror_root", default=None)
    autoprefix = ns.get_bool("autoprefix", default=False)
    postcss_path = ns.get_str("postcss_binary", default=None)
    mirror_root = inputs.paths.source(*mirror.split("/")) if mirror else None

    if options.output_name is None:
        options = replace(options, output_name=DEFAULT_OUTPUT_NAME)

    source_glob = inputs.paths.source(*entry.split("/"))
    destination_root = inputs.paths.dist("css")

    async def _transform(sources: PathSet, opts: StageOptions) -> PathSet:
        binary = tools.require_binary("sass", explicit_path=binary_path, stage=name)
        postcss = (
            tools.require_binary("postcss", explicit_path=postcss_path, stage=name, option="postcss_binary")
            if autoprefix
            else None
        )
        written: list[str] = []
        for source in sources:
            output = destination_for(
                source,
                source_base=descriptor.source_base,
                destination_root=destination_root,
                output_name=opts.output_name,
            )
            compiled = await tools.compile_sass(
                source,
                output=output,
                binary=binary,
                minify=opts.minify,
                source_maps=opts.source_maps,
            )
            if postcss is not None:
                await tools.autoprefix_css(output, binary=postcss, source_maps=opts.source_maps)
            written.extend(compiled)
        if mirror_root is not None:
            _mirror(written, destination_root, mirror_root)
        return PathSet(written)

    descriptor = StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        # Partials are imported by the entry point; touching one rebuilds it.
        dependencies=inputs.paths.source("scss", "**", "*.scss"),
        summary="Styles task complete",
        tags=("compile",),
    )
    return descriptor


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Compile the sass entry point into a minified stylesheet with a source map (optionally autoprefixed).",
    source="asset_pipeline.tools.compile_sass",
    tags=("compile",),
)
