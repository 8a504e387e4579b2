"""Named tasks: the pipelines and long-running sessions the CLI can start.

Stage pipelines (`clean`, `styles`, ..., `default`, `deploy-prod`, `build`)
are registered with one `PipelineRunner`. `watchFiles` and `browser` are
sessions that run until cancelled; `default` runs its pipeline and then
starts both.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from assetkit import (
    ConfigurationError,
    Pipeline,
    PipelineResult,
    PipelineRunner,
    StageDescriptor,
    WatchBinding,
    WatchDispatcher,
)
from assetkit.engine import FileSystem, FileSystemWatcher, sequence, setup_then_fanout, single
from assetkit.engine.boundary import ErrorSink
from assetkit.stage_registry import close_matches
from asset_pipeline.framework.config import BuildConfig
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.notify import (
    CompositeErrorSink,
    DesktopErrorSink,
    LoggingErrorSink,
    LoggingReloadNotifier,
)
from asset_pipeline.server import StaticServer
from asset_pipeline.stages.registry import get_stage_registry

STAGE_ORDER = ("clean", "html", "styles", "lint", "scripts", "images", "exportWebp", "fonts")

DEFAULT_SEQUENCE = STAGE_ORDER
DEPLOY_SEQUENCE = ("clean", "styles", "scripts", "images", "exportWebp", "fonts")
BUILD_FANOUT = ("html", "styles", "scripts", "images", "exportWebp", "fonts")

WATCH_TASK = "watchFiles"
BROWSER_TASK = "browser"

COMPOSITE_DOCS = {
    "default": "Full build, then watch sources and serve the destination.",
    "deploy-prod": "Production build: clean, styles, scripts, images, exportWebp, fonts.",
    "build": "Clean, then every content stage concurrently.",
}
SESSION_DOCS = {
    WATCH_TASK: "Rebuild on source changes and reload browsers after each run.",
    BROWSER_TASK: "Serve the destination tree over HTTP.",
}


@dataclass
class Project:
    config: BuildConfig
    stages: dict[str, StageDescriptor]
    runner: PipelineRunner
    reloader: LoggingReloadNotifier
    logger: logging.Logger

    def tasks(self) -> tuple[str, ...]:
        pipelines = self.runner.registry.available()
        return tuple(sorted(set(pipelines) | set(SESSION_DOCS)))

    def describe_tasks(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for name in self.tasks():
            if name in SESSION_DOCS:
                rows.append({"task": name, "kind": "session", "doc": SESSION_DOCS[name]})
                continue
            pipeline = self.runner.registry.get(name)
            rows.append(
                {
                    "task": name,
                    "kind": "pipeline",
                    "doc": pipeline.doc,
                    "stages": list(pipeline.stage_names()),
                }
            )
        return rows


def build_error_sink(cfg: BuildConfig, logger: logging.Logger) -> ErrorSink:
    sinks: list[ErrorSink] = [LoggingErrorSink(logger)]
    if cfg.logging.desktop_notifications:
        sinks.append(DesktopErrorSink(logger=logger))
    return CompositeErrorSink(sinks, logger=logger)


def _warn_unknown_stage_sections(cfg: BuildConfig, available: tuple[str, ...], logger: logging.Logger) -> None:
    for name in cfg.stages:
        if name in available:
            continue
        suggestions = close_matches(name, available)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        logger.warning("Unknown config section ignored: stages.%s%s", name, hint)


def build_project(
    cfg: BuildConfig,
    *,
    logger: logging.Logger | None = None,
    sink: ErrorSink | None = None,
    reloader: LoggingReloadNotifier | None = None,
    fs: FileSystem | None = None,
) -> Project:
    logger = logger or logging.getLogger("asset_pipeline")
    registry = get_stage_registry()
    _warn_unknown_stage_sections(cfg, registry.available(), logger)

    inputs = BuildInputs(paths=cfg.paths, logger=logger)
    stages = {
        stage_id: registry.resolve(stage_id).build(inputs, options=cfg.stage_options(stage_id))
        for stage_id in STAGE_ORDER
    }

    pipelines: list[Pipeline] = [single(stages[stage_id]) for stage_id in STAGE_ORDER]
    pipelines.append(
        sequence("default", [stages[s] for s in DEFAULT_SEQUENCE], doc=COMPOSITE_DOCS["default"])
    )
    pipelines.append(
        sequence("deploy-prod", [stages[s] for s in DEPLOY_SEQUENCE], doc=COMPOSITE_DOCS["deploy-prod"])
    )
    pipelines.append(
        setup_then_fanout(
            "build",
            setup=[stages["clean"]],
            fanout=[stages[s] for s in BUILD_FANOUT],
            doc=COMPOSITE_DOCS["build"],
        )
    )

    runner = PipelineRunner(
        pipelines,
        fs=fs,
        sink=sink if sink is not None else build_error_sink(cfg, logger),
        listeners=[logger.info],
        logger=logger,
    )
    return Project(
        config=cfg,
        stages=stages,
        runner=runner,
        reloader=reloader or LoggingReloadNotifier(logger),
        logger=logger,
    )


def watch_bindings(project: Project) -> list[WatchBinding]:
    paths = project.config.paths
    reload = project.reloader.reload
    return [
        WatchBinding(glob=paths.source("scss", "**", "*"), pipeline="styles", post_action=reload),
        WatchBinding(
            glob=paths.source("js", "**", "*"),
            pipeline="scripts",
            post_action=reload,
            ignore=("**/node_modules/**",),
        ),
        WatchBinding(glob=paths.source("images", "**", "*"), pipeline="images", post_action=reload),
        WatchBinding(glob=paths.source("fonts", "**", "*"), pipeline="fonts", post_action=reload),
        WatchBinding(glob=paths.source("*.html"), pipeline="html", post_action=reload),
    ]


def create_dispatcher(project: Project) -> WatchDispatcher:
    dispatcher = WatchDispatcher(
        project.runner,
        debounce_s=project.config.watch.debounce_s,
        logger=project.logger,
    )
    for binding in watch_bindings(project):
        dispatcher.bind(binding)
    return dispatcher


async def _wait(stop: asyncio.Event | None) -> None:
    await (stop or asyncio.Event()).wait()


async def watch_files(
    project: Project,
    *,
    stop: asyncio.Event | None = None,
    observer_factory: Callable[[], Any] | None = None,
) -> WatchDispatcher:
    """Run a watch session until `stop` is set (or the task is cancelled)."""

    dispatcher = create_dispatcher(project)
    kwargs: dict[str, Any] = {"logger": project.logger}
    if observer_factory is not None:
        kwargs["observer_factory"] = observer_factory
    watcher = FileSystemWatcher(dispatcher, **kwargs)
    watcher.start()
    project.logger.info("Watching for changes (Ctrl+C to stop)")
    try:
        await _wait(stop)
    finally:
        watcher.stop()
        await dispatcher.close()
    return dispatcher


def create_server(project: Project) -> StaticServer:
    server_cfg = project.config.server
    return StaticServer(
        project.config.paths.dist_dir,
        host=server_cfg.host,
        port=server_cfg.port,
        logger=project.logger,
    )


async def browser(project: Project, *, stop: asyncio.Event | None = None) -> None:
    server = create_server(project)
    server.start()
    try:
        await _wait(stop)
    finally:
        server.stop()


async def _watch_and_serve(
    project: Project,
    *,
    stop: asyncio.Event | None,
    observer_factory: Callable[[], Any] | None,
) -> None:
    server = create_server(project)
    server.start()
    try:
        await watch_files(project, stop=stop, observer_factory=observer_factory)
    finally:
        server.stop()


async def run_task(
    project: Project,
    name: str,
    *,
    stop: asyncio.Event | None = None,
    observer_factory: Callable[[], Any] | None = None,
) -> PipelineResult | None:
    """Run one named task.

    Returns the pipeline result for pipeline tasks and None for sessions.
    Raises ConfigurationError for unknown task names.
    """

    task = (name or "").strip()
    if task == WATCH_TASK:
        await watch_files(project, stop=stop, observer_factory=observer_factory)
        return None
    if task == BROWSER_TASK:
        await browser(project, stop=stop)
        return None

    if task not in project.runner.registry.available():
        available = project.tasks()
        suggestions = close_matches(task, available)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        raise ConfigurationError(f"Unknown task: {name}{hint} (available: {', '.join(available)})")

    result = await project.runner.run(task)
    if task == "default":
        await _watch_and_serve(project, stop=stop, observer_factory=observer_factory)
    return result
