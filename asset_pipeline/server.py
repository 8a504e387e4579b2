"""Static development server for the destination tree."""

from __future__ import annotations

import logging
import os
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from typing import Any


class _QuietHandler(SimpleHTTPRequestHandler):
    logger: logging.Logger = logging.getLogger(__name__)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        self.logger.debug("%s - %s", self.address_string(), format % args)


class StaticServer:
    def __init__(
        self,
        root: str,
        *,
        host: str = "127.0.0.1",
        port: int = 3000,
        logger: logging.Logger | None = None,
    ):
        self._root = os.path.abspath(root)
        self._host = host
        self._port = int(port)
        self._logger = logger or logging.getLogger(__name__)
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        host, port = self._host, self._port
        if self._httpd is not None:
            host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}/"

    @property
    def running(self) -> bool:
        return self._httpd is not None

    def start(self) -> str:
        if self._httpd is not None:
            raise RuntimeError("StaticServer already started")
        os.makedirs(self._root, exist_ok=True)

        handler = type("_Handler", (_QuietHandler,), {"logger": self._logger})
        self._httpd = ThreadingHTTPServer(
            (self._host, self._port), partial(handler, directory=self._root)
        )
        self._thread = threading.Thread(
            target=self._httpd.serve_forever, name="static-server", daemon=True
        )
        self._thread.start()
        self._logger.info("Serving %s at %s", self._root, self.url)
        return self.url

    def stop(self) -> None:
        httpd = self._httpd
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._httpd = None
        self._thread = None
        self._logger.info("Static server stopped")
