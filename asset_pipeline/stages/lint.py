from __future__ import annotations

from assetkit import PathSet, StageDescriptor, StageOptions, StageRef
from asset_pipeline import tools
from asset_pipeline.framework.runtime import BuildInputs

KIND_ID = "lint"


def _build(inputs: BuildInputs, *, name: str, options: StageOptions) -> StageDescriptor:
    ns = options.reader(f"stages.{name}")
    binary_path = ns.get_str("binary", default=None)
    ignore = tuple(ns.get_list_str("ignore", default=["**/node_modules/**"]))

    async def _transform(sources: PathSet, _options: StageOptions) -> PathSet:
        binary = tools.require_binary("eslint", explicit_path=binary_path, stage=name)
        warnings = await tools.lint_scripts(list(sources), binary=binary)
        for warning in warnings:
            inputs.logger.warning(
                "%s:%d:%d: %s%s",
                warning.file,
                warning.line,
                warning.column,
                warning.message,
                f" ({warning.rule})" if warning.rule else "",
            )
        return PathSet()

    return StageDescriptor(
        name=name,
        source_glob=inputs.paths.source("js", "**", "*.js"),
        destination_root=inputs.paths.dist("js"),
        transform=_transform,
        options=options,
        ignore=ignore,
        # Lint has no outputs to compare against.
        check_changes=False,
        summary="ESLint task complete",
        tags=("check",),
    )


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Lint every script outside node_modules; errors fail the stage, warnings are logged.",
    source="asset_pipeline.tools.lint_scripts",
    tags=("check",),
)
