from __future__ import annotations

from pathlib import Path

from PIL import Image

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef, TransformError
from assetkit.engine.changes import destination_for
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages._shared import file_failure

KIND_ID = "exportWebp"

WEBP_SUFFIX = ".webp"
DEFAULT_QUALITY = 75


def convert_to_webp(src: str, dst: str, *, quality: int = DEFAULT_QUALITY) -> None:
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    with Image.open(src) as im:
        mode = "RGBA" if im.mode in ("RGBA", "LA", "P") else "RGB"
        im.convert(mode).save(dst, format="WEBP", quality=quality)


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    ns = options.reader(f"stages.{name}")
    quality = ns.get_int("quality", default=DEFAULT_QUALITY, min_value=0, max_value=100)

    source_glob = inputs.paths.source("images", "**", "*.{png,jpg,jpeg}")
    destination_root = inputs.paths.dist("images")
    source_base = inputs.paths.source("images")

    def _transform(sources: PathSet, _options: StageOptions) -> PathSet:
        written: list[str] = []
        errors: list[TransformError] = []
        for source in sources:
            destination = destination_for(
                source,
                source_base=source_base,
                destination_root=destination_root,
                output_suffix=WEBP_SUFFIX,
            )
            try:
                convert_to_webp(source, destination, quality=quality)
            except Exception as exc:
                errors.append(file_failure(exc, source=source))
                continue
            written.append(destination)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup(f"{len(errors)} image(s) failed webp conversion", errors)
        return PathSet(written)

    return StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        output_suffix=WEBP_SUFFIX,
        summary="ExportWebp task complete",
        tags=("content",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Export a .webp copy (quality 75 by default) next to every png/jpg image.",
    source="asset_pipeline.stages.webp.convert_to_webp",
    tags=("content",),
)
