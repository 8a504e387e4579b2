from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from assetkit import ConfigurationError

CONFIG_ENV_VAR = "ASSET_PIPELINE_CONFIG"

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="asset-pipeline", add_help=True)
    parser.add_argument(
        "--config",
        default=None,
        help=f"Config YAML to load instead of config/config.yaml (env: {CONFIG_ENV_VAR})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a named task (default, deploy-prod, styles, ...)")
    run.add_argument("task", nargs="?", default="default")

    sub.add_parser("list-tasks", help="List runnable tasks")
    sub.add_parser("list-stages", help="List available stages")

    describe = sub.add_parser("describe", help="Show a pipeline's stages and waves as JSON")
    describe.add_argument("pipeline")

    return parser


def _load_build_config(config_path: str | None) -> tuple[Any, list[str]]:
    from asset_pipeline.foundation.config_io import load_config  # noqa: PLC0415
    from asset_pipeline.framework.config import BuildConfig  # noqa: PLC0415

    warnings: list[str] = []
    try:
        loaded = load_config(config_path=config_path, env_var=CONFIG_ENV_VAR)
        raw, root = loaded.data, loaded.project_root or os.getcwd()
    except FileNotFoundError as exc:
        if config_path:
            raise ConfigurationError(str(exc)) from exc
        warnings.append(f"{exc}; using built-in defaults")
        raw, root = {}, os.getcwd()

    cfg, parse_warnings = BuildConfig.from_dict(raw, root=root)
    return cfg, warnings + parse_warnings


def _print_rows(rows: Sequence[dict[str, Any]], key: str) -> None:
    width = max((len(str(row[key])) for row in rows), default=0)
    for row in rows:
        doc = row.get("doc") or ""
        print(f"{str(row[key]).ljust(width)}  {doc}".rstrip())


def _run_task(cfg: Any, warnings: list[str], task: str) -> int:
    from asset_pipeline.foundation.logging_utils import setup_operational_logger  # noqa: PLC0415
    from asset_pipeline.tasks import build_project, run_task  # noqa: PLC0415

    session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    logger, _log_file = setup_operational_logger(
        session_id, log_dir=cfg.logging.log_dir, level=cfg.logging.level
    )
    for warning in warnings:
        logger.warning(warning)

    project = build_project(cfg, logger=logger)
    try:
        result = asyncio.run(run_task(project, task))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping")
        return EXIT_OK

    if result is not None and not result.ok:
        logger.error(
            "Task %s finished with %d failure(s): %s",
            task,
            len(result.failures),
            ", ".join(sorted({event.stage for event in result.failures})),
        )
        return EXIT_FAILURES
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "list-stages":
        from asset_pipeline.stages.registry import get_stage_registry  # noqa: PLC0415

        _print_rows(get_stage_registry().describe(), "stage_id")
        return EXIT_OK

    try:
        cfg, warnings = _load_build_config(args.config)

        if args.command == "run":
            return _run_task(cfg, warnings, args.task)

        from asset_pipeline.tasks import build_project  # noqa: PLC0415

        for warning in warnings:
            print(f"warning: {warning}", file=sys.stderr)
        project = build_project(cfg)

        if args.command == "list-tasks":
            _print_rows(project.describe_tasks(), "task")
            return EXIT_OK

        if args.command == "describe":
            pipeline = project.runner.registry.get(args.pipeline)
            print(json.dumps(pipeline.describe(), indent=2))
            return EXIT_OK
    except (ConfigurationError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
