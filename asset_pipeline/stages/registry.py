from __future__ import annotations

from functools import lru_cache

from assetkit import StageRef, StageRegistry


@lru_cache(maxsize=1)
def get_stage_registry() -> StageRegistry:
    # Import side-effect: stage modules define `STAGE` symbols collected here.
    # This function is the single import point for the CLI and task wiring.
    from asset_pipeline.stages import (  # noqa: PLC0415
        clean,
        fonts,
        html,
        images,
        lint,
        scripts,
        styles,
        webp,
    )

    refs: list[StageRef] = []
    for module in (clean, html, styles, lint, scripts, images, webp, fonts):
        ref = getattr(module, "STAGE", None)
        if isinstance(ref, StageRef):
            refs.append(ref)

    return StageRegistry.from_refs(refs)
