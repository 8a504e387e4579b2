"""Typed reads over a stage's option mapping."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MISSING = object()


class OptionReader:
    """Read stage options by key, remembering which keys were recognized.

    Stage options are lenient: whatever a stage does not read stays available
    through `unconsumed()` and is never an error.
    """

    def __init__(self, data: Mapping[str, Any] | None, *, path: str):
        self._data = dict(data or {})
        self._path = path
        self._read: set[str] = set()

    def _label(self, key: str) -> str:
        return f"{self._path}.{key}" if self._path else key

    def _lookup(self, key: str, default: Any) -> Any:
        self._read.add(key)
        if key in self._data:
            return self._data[key]
        if default is _MISSING:
            raise ValueError(f"Missing required option: {self._label(key)}")
        return default

    def unconsumed(self) -> dict[str, Any]:
        return {k: v for k, v in sorted(self._data.items()) if k not in self._read}

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        value = self._lookup(key, default)
        if not isinstance(value, bool):
            raise TypeError(f"{self._label(key)} must be a boolean (type={type(value).__name__})")
        return value

    def get_int(
        self,
        key: str,
        *,
        default: int | object = _MISSING,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        value = self._lookup(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{self._label(key)} must be an int (type={type(value).__name__})")
        if min_value is not None and value < min_value:
            raise ValueError(f"{self._label(key)} must be >= {min_value} (got {value})")
        if max_value is not None and value > max_value:
            raise ValueError(f"{self._label(key)} must be <= {max_value} (got {value})")
        return value

    def get_str(self, key: str, *, default: str | None | object = _MISSING) -> str | None:
        value = self._lookup(key, default)
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError(f"{self._label(key)} must be a string (type={type(value).__name__})")
        if not value.strip():
            raise ValueError(f"{self._label(key)} cannot be empty")
        return value.strip()

    def get_list_str(
        self,
        key: str,
        *,
        default: list[str] | tuple[str, ...] | object = _MISSING,
    ) -> list[str]:
        """Read a list of globs or names; an empty list is allowed."""

        value = self._lookup(key, default)
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"{self._label(key)} must be a list[str] (type={type(value).__name__})")
        items: list[str] = []
        for idx, item in enumerate(value):
            if not isinstance(item, str) or not item.strip():
                raise TypeError(f"{self._label(key)}[{idx}] must be a non-empty string")
            items.append(item.strip())
        return items
