"""Watch dispatcher: rebuild-and-notify cycles driven by file changes.

Each binding runs its own IDLE -> RUNNING -> IDLE state machine. A change
that arrives while a binding is RUNNING only sets its PENDING flag, so any
number of mid-run changes collapse into exactly one follow-up run. Changes
that arrive during the debounce wait before a run are absorbed by that run.

All state lives on the event loop thread; the watchdog observer thread only
hands paths over with `call_soon_threadsafe`.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetkit.engine.pipeline import Pipeline, PipelineResult, PipelineRunner
from assetkit.errors import ConfigurationError
from assetkit.globbing import compile_glob, glob_base, match

PostAction = Callable[[], Any]


class BindingState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class WatchBinding:
    glob: str
    pipeline: Pipeline | str
    post_action: PostAction | None = None
    name: str | None = None
    ignore: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.glob, str) or not self.glob.strip():
            raise TypeError("WatchBinding.glob must be a non-empty string")
        object.__setattr__(self, "glob", self.glob.strip())
        if not isinstance(self.pipeline, (Pipeline, str)):
            raise TypeError(
                f"WatchBinding.pipeline must be a Pipeline or name (type={type(self.pipeline).__name__})"
            )
        if self.post_action is not None and not callable(self.post_action):
            raise TypeError("WatchBinding.post_action must be callable or None")
        if self.name is None:
            pipeline_name = self.pipeline.name if isinstance(self.pipeline, Pipeline) else self.pipeline
            object.__setattr__(self, "name", pipeline_name.strip())
        object.__setattr__(self, "ignore", tuple(self.ignore))

    def matches(self, path: str) -> bool:
        if not match(path, self.glob):
            return False
        if not self.ignore:
            return True
        relative = os.path.relpath(os.path.abspath(path), os.path.abspath(glob_base(self.glob)))
        relative = relative.replace(os.sep, "/")
        return not any(compile_glob(item).match(relative) for item in self.ignore)


@dataclass
class _BindingWorker:
    binding: WatchBinding
    pipeline: Pipeline
    state: BindingState = BindingState.IDLE
    pending: bool = False
    runs: int = 0
    last_result: PipelineResult | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class WatchDispatcher:
    def __init__(
        self,
        runner: PipelineRunner,
        *,
        debounce_s: float = 0.1,
        logger: logging.Logger | None = None,
    ):
        if debounce_s < 0:
            raise ValueError("debounce_s must be >= 0")
        self._runner = runner
        self._debounce_s = float(debounce_s)
        self._logger = logger or logging.getLogger(__name__)
        self._workers: dict[str, _BindingWorker] = {}
        self._closed = False

    def bind(self, binding: WatchBinding) -> str:
        if self._closed:
            raise RuntimeError("Watch session is closed")
        if not isinstance(binding, WatchBinding):
            raise TypeError(f"bind expects a WatchBinding (type={type(binding).__name__})")
        name = binding.name or ""
        if name in self._workers:
            raise ValueError(f"Duplicate watch binding: {name}")
        pipeline = self._runner.resolve(binding.pipeline)
        self._workers[name] = _BindingWorker(binding=binding, pipeline=pipeline)
        self._logger.info("Watching %s -> %s", binding.glob, pipeline.name)
        return name

    def bindings(self) -> tuple[WatchBinding, ...]:
        return tuple(worker.binding for worker in self._workers.values())

    def state(self, name: str) -> BindingState:
        return self._worker(name).state

    def pending(self, name: str) -> bool:
        return self._worker(name).pending

    def run_count(self, name: str) -> int:
        return self._worker(name).runs

    def last_result(self, name: str) -> PipelineResult | None:
        return self._worker(name).last_result

    def _worker(self, name: str) -> _BindingWorker:
        worker = self._workers.get(name)
        if worker is None:
            available = ", ".join(sorted(self._workers)) or "<none>"
            raise ConfigurationError(f"Unknown watch binding: {name} (available: {available})")
        return worker

    def notify(self, path: str) -> tuple[str, ...]:
        """Route one change event; returns the bindings it reached.

        Must be called on the event loop thread.
        """

        if self._closed:
            return ()
        reached: list[str] = []
        for name, worker in self._workers.items():
            if worker.binding.matches(path):
                self._logger.debug("Change %s matched binding %s", path, name)
                self._trigger(worker)
                reached.append(name)
        return tuple(reached)

    def dispatch(self, name: str) -> None:
        if self._closed:
            return
        self._trigger(self._worker(name))

    def _trigger(self, worker: _BindingWorker) -> None:
        if worker.state is BindingState.RUNNING:
            worker.pending = True
            return
        worker.state = BindingState.RUNNING
        worker.task = asyncio.get_running_loop().create_task(
            self._drive(worker), name=f"watch:{worker.binding.name}"
        )

    async def _drive(self, worker: _BindingWorker) -> None:
        try:
            while True:
                if self._debounce_s:
                    await asyncio.sleep(self._debounce_s)
                # Anything that arrived during the debounce wait is covered by this run.
                worker.pending = False
                await self._run_once(worker)
                if not worker.pending:
                    break
                self._logger.info("Changes arrived during %s run; running again", worker.binding.name)
        finally:
            worker.state = BindingState.IDLE
            worker.pending = False
            worker.task = None

    async def _run_once(self, worker: _BindingWorker) -> None:
        try:
            result = await self._runner.run(worker.pipeline)
        except ConfigurationError as exc:
            self._logger.error("Watch binding %s cannot run: %s", worker.binding.name, exc)
            return
        except Exception:
            self._logger.exception("Watch binding %s run crashed", worker.binding.name)
            return

        worker.runs += 1
        worker.last_result = result

        action = worker.binding.post_action
        if action is None:
            return
        try:
            outcome = action()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self._logger.exception("Post-action failed for watch binding %s", worker.binding.name)

    async def wait_idle(self) -> None:
        while True:
            tasks = [worker.task for worker in self._workers.values() if worker.task is not None]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """End the session: stop accepting changes and let in-flight runs finish."""

        self._closed = True
        for worker in self._workers.values():
            worker.pending = False
        await self.wait_idle()
        self._logger.info("Watch session closed")


class _ForwardingHandler(FileSystemEventHandler):
    def __init__(self, forward: Callable[[str], None]):
        super().__init__()
        self._forward = forward

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(os.fsdecode(event.dest_path))


def _outermost(directories: Iterable[str]) -> list[str]:
    ordered = sorted({os.path.abspath(d) for d in directories}, key=len)
    kept: list[str] = []
    for directory in ordered:
        if any(directory == k or directory.startswith(k.rstrip(os.sep) + os.sep) for k in kept):
            continue
        kept.append(directory)
    return kept


class FileSystemWatcher:
    """Feed OS file events for every binding's glob base into a dispatcher."""

    def __init__(
        self,
        dispatcher: WatchDispatcher,
        *,
        observer_factory: Callable[[], Any] = Observer,
        logger: logging.Logger | None = None,
    ):
        self._dispatcher = dispatcher
        self._observer_factory = observer_factory
        self._logger = logger or logging.getLogger(__name__)
        self._observer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _forward(self, path: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._dispatcher.notify, path)

    def start(self) -> None:
        if self._observer is not None:
            raise RuntimeError("FileSystemWatcher already started")
        self._loop = asyncio.get_running_loop()
        observer = self._observer_factory()
        handler = _ForwardingHandler(self._forward)

        bases = [glob_base(binding.glob) for binding in self._dispatcher.bindings()]
        for base in _outermost(bases):
            if not os.path.isdir(base):
                self._logger.warning("Watch root does not exist, skipping: %s", base)
                continue
            observer.schedule(handler, base, recursive=True)
            self._logger.debug("Observing %s", base)

        observer.start()
        self._observer = observer

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        observer.stop()
        observer.join()
        self._observer = None
        self._loop = None
