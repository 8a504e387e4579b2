"""Change filter: decide whether a source file needs reprocessing.

Pure functions over an injectable filesystem so staleness can be checked
against synthetic timestamps. Nothing here writes to disk except
`LocalFileSystem.remove`, which the cleanup stage uses.
"""

from __future__ import annotations

import enum
import os
import shutil
from dataclasses import dataclass
from typing import Iterable, Protocol

from assetkit.pathset import PathSet


class Freshness(str, enum.Enum):
    STALE = "stale"
    FRESH = "fresh"


@dataclass(frozen=True)
class ChangeRecord:
    source: str
    destination: str
    decision: Freshness

    @property
    def stale(self) -> bool:
        return self.decision is Freshness.STALE


class FileSystem(Protocol):
    def exists(self, path: str) -> bool: ...

    def mtime(self, path: str) -> float: ...

    def remove(self, path: str) -> None: ...


class LocalFileSystem:
    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def mtime(self, path: str) -> float:
        # Nanosecond resolution so copies that preserve timestamps compare equal.
        return os.stat(path).st_mtime_ns

    def remove(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)


LOCAL_FS = LocalFileSystem()


def destination_for(
    source: str,
    *,
    source_base: str | None,
    destination_root: str,
    output_name: str | None = None,
    output_suffix: str | None = None,
) -> str:
    """Map a source path to its destination under `destination_root`."""

    relative = os.path.basename(source)
    if source_base:
        candidate = os.path.relpath(source, source_base)
        if not candidate.startswith(os.pardir):
            relative = candidate

    if output_name:
        relative = os.path.join(os.path.dirname(relative), output_name)
    elif output_suffix:
        relative = os.path.splitext(relative)[0] + output_suffix

    return os.path.join(destination_root, relative)


def is_stale(
    source_path: str,
    destination_root: str,
    *,
    source_base: str | None = None,
    output_name: str | None = None,
    output_suffix: str | None = None,
    dependencies: Iterable[str] = (),
    fs: FileSystem | None = None,
) -> bool:
    """True when the mapped destination is missing or strictly older than its sources.

    Equal timestamps count as fresh. Any error while inspecting either side
    counts as stale.
    """

    fs = fs or LOCAL_FS
    destination = destination_for(
        source_path,
        source_base=source_base,
        destination_root=destination_root,
        output_name=output_name,
        output_suffix=output_suffix,
    )

    try:
        if not fs.exists(destination):
            return True
        destination_mtime = fs.mtime(destination)
        newest = fs.mtime(source_path)
        for dependency in dependencies:
            newest = max(newest, fs.mtime(dependency))
    except Exception:  # noqa: BLE001
        return True

    return destination_mtime < newest


def check_changes(
    sources: Iterable[str],
    *,
    destination_root: str,
    source_base: str | None = None,
    output_name: str | None = None,
    output_suffix: str | None = None,
    dependencies: Iterable[str] = (),
    fs: FileSystem | None = None,
) -> tuple[ChangeRecord, ...]:
    dependencies = tuple(dependencies)
    records: list[ChangeRecord] = []
    for source in sources:
        stale = is_stale(
            source,
            destination_root,
            source_base=source_base,
            output_name=output_name,
            output_suffix=output_suffix,
            dependencies=dependencies,
            fs=fs,
        )
        records.append(
            ChangeRecord(
                source=source,
                destination=destination_for(
                    source,
                    source_base=source_base,
                    destination_root=destination_root,
                    output_name=output_name,
                    output_suffix=output_suffix,
                ),
                decision=Freshness.STALE if stale else Freshness.FRESH,
            )
        )
    return tuple(records)


def stale_sources(records: Iterable[ChangeRecord]) -> PathSet:
    return PathSet(record.source for record in records if record.stale)
