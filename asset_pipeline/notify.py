"""Error sinks and the browser reload notifier."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Iterable

from assetkit.engine.boundary import ErrorSink, FailureEvent


class LoggingErrorSink:
    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)

    def notify_error(self, event: FailureEvent) -> None:
        self._logger.error("%s task error: %s", _title(event.stage), event.describe())


def _title(stage: str) -> str:
    return f"{stage[:1].upper()}{stage[1:]}"


class DesktopErrorSink:
    """Pop a desktop notification per failure (via `notify-send` when installed).

    Delivery is fire-and-forget: the process is started and never waited on,
    so a slow notification daemon cannot stall a build.
    """

    def __init__(
        self,
        *,
        binary: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._binary = binary or shutil.which("notify-send")
        if self._binary is None:
            self._logger.debug("notify-send not found; desktop notifications disabled")

    @property
    def available(self) -> bool:
        return self._binary is not None

    def notify_error(self, event: FailureEvent) -> None:
        if self._binary is None:
            return
        argv = [
            self._binary,
            "--urgency=critical",
            f"{_title(event.stage)} task error",
            event.describe(),
        ]
        try:
            subprocess.Popen(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            self._logger.warning("Desktop notification failed: %s", exc)


class CompositeErrorSink:
    def __init__(self, sinks: Iterable[ErrorSink], *, logger: logging.Logger | None = None):
        self._sinks = tuple(sinks)
        self._logger = logger or logging.getLogger(__name__)

    def notify_error(self, event: FailureEvent) -> None:
        for sink in self._sinks:
            try:
                sink.notify_error(event)
            except Exception:
                self._logger.exception("Error sink %s failed", type(sink).__name__)


class LoggingReloadNotifier:
    """Post-action for watch bindings: tell connected browsers to reload.

    There is no live-reload transport; the reload is logged and counted so a
    browser extension or a manual refresh can follow it.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)
        self.count = 0

    def reload(self) -> None:
        self.count += 1
        self._logger.info("Reloading browsers (%d)", self.count)
