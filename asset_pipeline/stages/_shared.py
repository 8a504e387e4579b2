from __future__ import annotations

import os
import shutil

from assetkit import PathSet
from assetkit.engine.changes import destination_for
from assetkit.errors import FileSystemError, TransformError


def copy_files(
    inputs: PathSet,
    *,
    source_base: str | None,
    destination_root: str,
) -> PathSet:
    """Copy each input under `destination_root`, keeping its path relative to `source_base`."""

    written: list[str] = []
    for source in inputs:
        destination = destination_for(source, source_base=source_base, destination_root=destination_root)
        os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
        try:
            shutil.copy2(source, destination)
        except OSError as exc:
            raise FileSystemError(exc.strerror or str(exc), file=source) from exc
        written.append(destination)
    return PathSet(written)


def file_failure(exc: Exception, *, source: str) -> TransformError:
    """Pin a per-file exception to its source so sibling files keep processing."""

    if isinstance(exc, TransformError):
        return exc
    if isinstance(exc, OSError):
        return FileSystemError(exc.strerror or str(exc), file=source)
    return TransformError(f"{type(exc).__name__}: {exc}", file=source)
