from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Any, Iterable

from assetkit.errors import ConfigurationError
from assetkit.stage_types import StageRef


def close_matches(key: str, available: Iterable[str], *, limit: int = 3) -> tuple[str, ...]:
    key = (key or "").strip()
    if not key:
        return ()
    candidates = list(available)
    matches = difflib.get_close_matches(key, candidates, n=limit)
    if not matches:
        lowered = {name.lower(): name for name in candidates}
        matches = [lowered[m] for m in difflib.get_close_matches(key.lower(), list(lowered), n=limit)]
    return tuple(matches)


@dataclass(frozen=True)
class StageRegistry:
    _by_id: dict[str, StageRef]

    @classmethod
    def from_refs(cls, refs: Iterable[StageRef]) -> "StageRegistry":
        entries: dict[str, StageRef] = {}
        for ref in refs:
            if ref.id in entries:
                raise ValueError(f"Duplicate stage id: {ref.id}")
            entries[ref.id] = ref
        return cls(_by_id=entries)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_id.keys()))

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for ref in sorted(self._by_id.values(), key=lambda r: r.id):
            rows.append(
                {
                    "stage_id": ref.id,
                    "doc": ref.doc,
                    "source": ref.source,
                    "tags": list(ref.tags),
                }
            )
        return tuple(rows)

    def resolve(self, stage_id: str) -> StageRef:
        if not isinstance(stage_id, str) or not stage_id.strip():
            raise ConfigurationError("stage_id must be a non-empty string")
        ref = self._by_id.get(stage_id.strip())
        if ref is not None:
            return ref

        suggestions = self.suggest(stage_id)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        available = ", ".join(self.available()) or "<none>"
        raise ConfigurationError(f"Unknown stage id: {stage_id}{hint} (available: {available})")

    def suggest(self, stage_id: str, *, limit: int = 3) -> tuple[str, ...]:
        return close_matches(stage_id, self.available(), limit=limit)
