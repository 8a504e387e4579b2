from __future__ import annotations

from typing import Iterable


class PathSet(tuple):
    """Ordered, de-duplicated, immutable sequence of path strings.

    Order is discovery order; the first occurrence of a path wins.
    """

    __slots__ = ()

    def __new__(cls, paths: Iterable[str] = ()) -> "PathSet":
        if isinstance(paths, str):
            raise TypeError("PathSet expects an iterable of paths, not a single string")
        seen: set[str] = set()
        ordered: list[str] = []
        for raw in paths:
            path = str(raw)
            if not path:
                raise ValueError("PathSet entries must be non-empty paths")
            if path in seen:
                continue
            seen.add(path)
            ordered.append(path)
        return super().__new__(cls, ordered)

    def __add__(self, other: Iterable[str]) -> "PathSet":  # type: ignore[override]
        return PathSet([*self, *other])

    def __repr__(self) -> str:
        return f"PathSet({list(self)!r})"
