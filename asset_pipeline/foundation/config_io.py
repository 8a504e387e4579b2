"""Locate and read the build settings YAML.

A project keeps its settings in `config/config.yaml`; a sibling
`config.local.yaml` (not committed) is layered on top for per-machine tweaks
such as tool binary paths.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = "config"
BASE_FILE = "config.yaml"
LOCAL_FILE = "config.local.yaml"


@dataclass(frozen=True)
class LoadedConfig:
    data: dict[str, Any]
    sources: tuple[str, ...]
    # Directory holding `config/`; None when a single file was named explicitly.
    project_root: str | None = None

    @property
    def layered(self) -> bool:
        return len(self.sources) > 1


def find_project_root(start: str | os.PathLike[str] | None = None) -> str:
    """Walk up from `start` to the first directory containing `config/config.yaml`."""

    origin = Path(start or os.getcwd()).resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / CONFIG_DIR / BASE_FILE).is_file():
            return str(candidate)
    raise FileNotFoundError(f"No {CONFIG_DIR}/{BASE_FILE} found in {origin} or any parent directory")


def read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def merge_overlay(base: Mapping[str, Any], overlay: Mapping[str, Any], *, path: str = "") -> dict[str, Any]:
    """Layer `overlay` onto `base`: sections merge key by key, anything else is replaced.

    A section in one file must stay a section in the other; lists replace lists
    wholesale and `null` clears a value.
    """

    merged = dict(base)
    for key, value in overlay.items():
        where = f"{path}.{key}" if path else str(key)
        current = merged.get(key)
        if value is None or current is None:
            merged[key] = value
        elif isinstance(current, Mapping) != isinstance(value, Mapping):
            raise ValueError(
                f"Invalid config overlay merge at {where}: "
                f"{type(current).__name__} cannot be replaced by {type(value).__name__}"
            )
        elif isinstance(current, Mapping):
            merged[key] = merge_overlay(current, value, path=where)
        elif isinstance(current, list) != isinstance(value, list):
            raise ValueError(
                f"Invalid config overlay merge at {where}: "
                f"{type(current).__name__} cannot be replaced by {type(value).__name__}"
            )
        else:
            merged[key] = value
    return merged


def load_config(
    *,
    config_path: str | os.PathLike[str] | None = None,
    env_var: str | None = None,
    start_dir: str | os.PathLike[str] | None = None,
) -> LoadedConfig:
    """Load build settings.

    `config_path`, or the file named by `env_var`, is read on its own.
    Otherwise the project root is discovered from `start_dir` and its base
    config is loaded with the local overlay applied.
    """

    explicit = str(config_path).strip() if config_path is not None else ""
    if not explicit and env_var:
        explicit = os.environ.get(env_var, "").strip()
    if explicit:
        resolved = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit)))
        return LoadedConfig(data=read_yaml(resolved), sources=(resolved,))

    root = find_project_root(start_dir)
    base_path = os.path.join(root, CONFIG_DIR, BASE_FILE)
    data = read_yaml(base_path)
    sources = [base_path]

    local_path = os.path.join(root, CONFIG_DIR, LOCAL_FILE)
    if os.path.isfile(local_path):
        data = merge_overlay(data, read_yaml(local_path))
        sources.append(local_path)

    return LoadedConfig(data=data, sources=tuple(sources), project_root=root)
