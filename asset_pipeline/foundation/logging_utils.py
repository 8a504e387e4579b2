"""Operational logging setup for build and watch sessions."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    session_id: str,
    *,
    log_dir: str | None = None,
    level: str = "INFO",
) -> tuple[logging.Logger, str | None]:
    """
    Configure the session logger: console output at `level`, plus a DEBUG
    file log under `log_dir` when one is configured.
    """

    logger = logging.getLogger(f"asset_pipeline.{session_id}")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{session_id}_build.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.info("Operational logging initialized for session %s", session_id)
    if log_file:
        logger.debug("Operational log file: %s", log_file)

    return logger, log_file
