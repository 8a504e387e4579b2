"""Glob helpers shared by source discovery and the watch dispatcher.

Supported syntax: `*` (within one path segment), `**` (any number of
segments), `?`, `[...]` character classes and `{a,b}` alternation.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from typing import Iterable

from assetkit.pathset import PathSet

_WILDCARDS = ("*", "?", "[", "{")


def _posix(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


def _normalize(pattern: str) -> str:
    if not isinstance(pattern, str) or not pattern.strip():
        raise ValueError("glob pattern must be a non-empty string")
    return _posix(os.path.normpath(pattern.strip()))


def has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in _WILDCARDS)


def glob_base(pattern: str) -> str:
    """Return the static directory prefix of a glob (the part before the first wildcard)."""

    normalized = _normalize(pattern)
    parts = normalized.split("/")
    static: list[str] = []
    for part in parts:
        if has_wildcard(part):
            break
        static.append(part)
    else:
        # No wildcard: the pattern names a single file, its base is the parent directory.
        static = static[:-1]

    if not static:
        return "."
    if static == [""]:
        return "/"
    return "/".join(static)


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    normalized = _normalize(pattern)
    out: list[str] = []
    i = 0
    n = len(normalized)
    while i < n:
        ch = normalized[i]
        if ch == "*":
            if normalized[i : i + 2] == "**":
                if normalized[i + 2 : i + 3] == "/":
                    out.append("(?:[^/]*/)*")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end = normalized.find("]", i + 1)
            if end == -1:
                out.append(re.escape(ch))
            else:
                body = normalized[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end + 1
                continue
        elif ch == "{":
            end = normalized.find("}", i + 1)
            if end == -1:
                out.append(re.escape(ch))
            else:
                alternatives = normalized[i + 1 : end].split(",")
                out.append("(?:" + "|".join(re.escape(alt) for alt in alternatives) + ")")
                i = end + 1
                continue
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


def match(path: str, pattern: str) -> bool:
    """Match a concrete path against a glob, comparing absolute forms."""

    candidate = _posix(os.path.abspath(path))
    return compile_glob(_posix(os.path.abspath(pattern))).match(candidate) is not None


def _ignored(relative: str, ignore: Iterable[str]) -> bool:
    return any(compile_glob(item).match(relative) for item in ignore)


def discover(pattern: str, *, ignore: Iterable[str] = ()) -> PathSet:
    """List the files matching `pattern` in sorted directory-walk order."""

    normalized = _normalize(pattern)
    ignore = tuple(ignore)

    if not has_wildcard(normalized):
        if os.path.isfile(normalized):
            return PathSet([normalized])
        return PathSet()

    base = glob_base(normalized)
    if not os.path.isdir(base):
        return PathSet()

    regex = compile_glob(normalized)
    found: list[str] = []
    for root, dirnames, filenames in os.walk(base):
        dirnames.sort()
        for filename in sorted(filenames):
            path = _posix(os.path.normpath(os.path.join(root, filename)))
            if regex.match(path) is None:
                continue
            if ignore and _ignored(_posix(os.path.relpath(path, base)), ignore):
                continue
            found.append(path)
    return PathSet(found)
