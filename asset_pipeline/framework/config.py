from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

DEFAULT_APP_DIR = "./src/FrontEndBundle/Resources/public"
DEFAULT_DIST_DIR = "./web"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts:
      - True/False
      - 0/1 (ints)
      - strings: true/false/1/0/yes/no (case-insensitive, surrounding whitespace ignored)

    Raises:
      ValueError for anything else, with the provided config key path.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
        raise ValueError(f"Invalid boolean for {path}: {value!r}")

    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def parse_int(value: Any, path: str) -> int:
    if value is None:
        raise ValueError(f"Invalid config value for {path}: None")
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected int, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not value.strip():
            raise ValueError(f"Invalid config value for {path}: must be an int")
        try:
            return int(value.strip())
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Invalid config value for {path}: must be an int") from exc
    raise ValueError(f"Invalid config type for {path}: expected int")


@dataclass(frozen=True)
class ProjectPaths:
    app_dir: str = DEFAULT_APP_DIR
    dist_dir: str = DEFAULT_DIST_DIR

    def source(self, *parts: str) -> str:
        return os.path.join(self.app_dir, *parts)

    def dist(self, *parts: str) -> str:
        return os.path.join(self.dist_dir, *parts)


@dataclass(frozen=True)
class WatchConfig:
    debounce_ms: int = 100

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass(frozen=True)
class LoggingConfig:
    log_dir: str | None = None
    level: str = "INFO"
    desktop_notifications: bool = False


@dataclass(frozen=True)
class BuildConfig:
    paths: ProjectPaths = field(default_factory=ProjectPaths)
    watch: WatchConfig = field(default_factory=WatchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    stages: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "stages",
            MappingProxyType({str(k): dict(v) for k, v in dict(self.stages).items()}),
        )

    def stage_options(self, name: str) -> dict[str, Any]:
        return dict(self.stages.get(name, {}))

    @staticmethod
    def from_dict(
        cfg: Mapping[str, Any], *, root: str | None = None
    ) -> tuple["BuildConfig", list[str]]:
        """Parse a raw config mapping.

        Returns the parsed config plus human-readable warnings for keys that
        were ignored. Relative paths are resolved against `root` when given.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError(f"Config must be a mapping (type={type(cfg).__name__})")

        warnings: list[str] = []

        def collect_unknown_keys(section: Mapping[str, Any], allowed: tuple[str, ...], path: str) -> None:
            for key in section.keys():
                if key not in allowed:
                    warnings.append(f"Unknown config key ignored: {path}.{key}" if path else f"Unknown config key ignored: {key}")

        def get_mapping(key: str) -> Mapping[str, Any]:
            value = cfg.get(key)
            if value is None:
                return {}
            if not isinstance(value, Mapping):
                raise ValueError(f"Invalid config type for {key}: expected mapping")
            return value

        def normalize_path(value: Any, path: str) -> str:
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Invalid config value for {path}: must be a non-empty string")
            expanded = os.path.expandvars(os.path.expanduser(value.strip()))
            if root and not os.path.isabs(expanded):
                expanded = os.path.join(root, expanded)
            return os.path.normpath(expanded)

        collect_unknown_keys(cfg, ("paths", "watch", "server", "logging", "stages"), "")

        paths_cfg = get_mapping("paths")
        collect_unknown_keys(paths_cfg, ("app_dir", "dist_dir"), "paths")
        paths = ProjectPaths(
            app_dir=normalize_path(paths_cfg.get("app_dir", DEFAULT_APP_DIR), "paths.app_dir"),
            dist_dir=normalize_path(paths_cfg.get("dist_dir", DEFAULT_DIST_DIR), "paths.dist_dir"),
        )
        if os.path.abspath(paths.app_dir) == os.path.abspath(paths.dist_dir):
            raise ValueError("paths.app_dir and paths.dist_dir must differ (clean removes dist_dir)")

        watch_cfg = get_mapping("watch")
        collect_unknown_keys(watch_cfg, ("debounce_ms",), "watch")
        debounce_ms = parse_int(watch_cfg.get("debounce_ms", 100), "watch.debounce_ms")
        if debounce_ms < 0:
            raise ValueError("Invalid config value for watch.debounce_ms: must be >= 0")

        server_cfg = get_mapping("server")
        collect_unknown_keys(server_cfg, ("host", "port"), "server")
        host = server_cfg.get("host", "127.0.0.1")
        if not isinstance(host, str) or not host.strip():
            raise ValueError("Invalid config value for server.host: must be a non-empty string")
        port = parse_int(server_cfg.get("port", 3000), "server.port")
        if not 0 <= port <= 65535:
            raise ValueError(f"Invalid config value for server.port: {port}")

        logging_cfg = get_mapping("logging")
        collect_unknown_keys(logging_cfg, ("log_dir", "level", "desktop_notifications"), "logging")
        raw_log_dir = logging_cfg.get("log_dir")
        log_dir = normalize_path(raw_log_dir, "logging.log_dir") if raw_log_dir is not None else None
        level = str(logging_cfg.get("level", "INFO")).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid config value for logging.level: {level!r} (expected one of: {', '.join(LOG_LEVELS)})"
            )
        desktop = parse_bool(
            logging_cfg.get("desktop_notifications", False), "logging.desktop_notifications"
        )

        stages_cfg = get_mapping("stages")
        stages: dict[str, dict[str, Any]] = {}
        for name, options in stages_cfg.items():
            if options is None:
                options = {}
            if not isinstance(options, Mapping):
                raise ValueError(f"Invalid config type for stages.{name}: expected mapping")
            stages[str(name)] = dict(options)

        return (
            BuildConfig(
                paths=paths,
                watch=WatchConfig(debounce_ms=debounce_ms),
                server=ServerConfig(host=host.strip(), port=port),
                logging=LoggingConfig(log_dir=log_dir, level=level, desktop_notifications=desktop),
                stages=stages,
            ),
            warnings,
        )
