from __future__ import annotations

import os
import shutil
from pathlib import Path

from PIL import Image

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef, TransformError
from assetkit.engine.changes import destination_for
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages._shared import file_failure

KIND_ID = "images"

_JPEG_SUFFIXES = {".jpg", ".jpeg"}


def optimize_image(src: str, dst: str, *, progressive: bool = True) -> None:
    """Losslessly re-encode PNG/JPEG/GIF with Pillow; copy anything else verbatim."""

    suffix = Path(src).suffix.lower()
    Path(dst).parent.mkdir(parents=True, exist_ok=True)

    if suffix not in _JPEG_SUFFIXES | {".png", ".gif"}:
        shutil.copy2(src, dst)
        return

    with Image.open(src) as im:
        if suffix in _JPEG_SUFFIXES:
            # "keep" reuses the source quantization tables and only exists for real JPEGs.
            quality = "keep" if im.format == "JPEG" else 95
            im.save(dst, format="JPEG", quality=quality, optimize=True, progressive=progressive)
        elif suffix == ".png":
            im.save(dst, format="PNG", optimize=True)
        else:
            im.save(dst, format="GIF", optimize=True, save_all=getattr(im, "is_animated", False))


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    ns = options.reader(f"stages.{name}")
    progressive = ns.get_bool("progressive", default=True)

    source_glob = inputs.paths.source("images", "**", "*")
    destination_root = inputs.paths.dist("images")
    source_base = inputs.paths.source("images")

    def _transform(sources: PathSet, _options: StageOptions) -> PathSet:
        written: list[str] = []
        errors: list[TransformError] = []
        for source in sources:
            destination = destination_for(source, source_base=source_base, destination_root=destination_root)
            try:
                optimize_image(source, destination, progressive=progressive)
            except Exception as exc:
                errors.append(file_failure(exc, source=source))
                continue
            written.append(destination)
        if errors:
            if len(errors) == 1:
                raise errors[0]
            raise ExceptionGroup(f"{len(errors)} image(s) failed", errors)
        inputs.logger.debug("Optimized %d image(s) into %s", len(written), os.path.normpath(destination_root))
        return PathSet(written)

    return StageDescriptor(
        name=name,
        source_glob=source_glob,
        destination_root=destination_root,
        transform=_transform,
        options=options,
        summary="Images task complete",
        tags=("content",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Optimize changed images (progressive JPEG, optimized PNG/GIF) into the destination.",
    source="asset_pipeline.stages.images.optimize_image",
    tags=("content",),
)
