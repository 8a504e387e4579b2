from __future__ import annotations

import os
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Protocol, Union

from assetkit.option_reader import OptionReader
from assetkit.globbing import glob_base
from assetkit.pathset import PathSet

__all__ = [
    "PathSet",
    "StageBuilder",
    "StageDescriptor",
    "StageOptions",
    "StageRef",
    "TransformFn",
]


@dataclass(frozen=True)
class StageOptions:
    """Generic options every stage recognizes.

    Anything else passed in stays in `extra` for stage-specific readers;
    unknown keys are never an error.
    """

    minify: bool = True
    source_maps: bool = True
    output_name: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.minify, bool):
            raise TypeError("StageOptions.minify must be a boolean")
        if not isinstance(self.source_maps, bool):
            raise TypeError("StageOptions.source_maps must be a boolean")
        if self.output_name is not None:
            if not isinstance(self.output_name, str) or not self.output_name.strip():
                raise TypeError("StageOptions.output_name must be a non-empty string or None")
            object.__setattr__(self, "output_name", self.output_name.strip())
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, *, path: str = "options") -> "StageOptions":
        if data is not None and not isinstance(data, Mapping):
            raise TypeError(f"{path} must be a mapping (type={type(data).__name__})")
        ns = OptionReader(data, path=path)
        minify = ns.get_bool("minify", default=True)
        source_maps = ns.get_bool("source_maps", default=True)
        output_name = ns.get_str("output_name", default=None)
        return cls(
            minify=minify,
            source_maps=source_maps,
            output_name=output_name,
            extra=ns.unconsumed(),
        )

    def reader(self, path: str = "options") -> OptionReader:
        """Reader over the stage-specific keys."""
        return OptionReader(self.extra, path=path)


class TransformFn(Protocol):
    def __call__(
        self, inputs: PathSet, options: StageOptions
    ) -> Union[PathSet, Awaitable[PathSet]]:
        ...


@dataclass(frozen=True)
class StageDescriptor:
    name: str
    source_glob: str | None
    destination_root: str
    transform: TransformFn
    options: StageOptions = field(default_factory=StageOptions)
    ignore: tuple[str, ...] = ()
    check_changes: bool = True
    output_suffix: str | None = None
    dependencies: str | None = None
    summary: str | None = None
    doc: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("StageDescriptor.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        if self.source_glob is not None:
            if not isinstance(self.source_glob, str) or not self.source_glob.strip():
                raise TypeError("StageDescriptor.source_glob must be a non-empty string or None")
            object.__setattr__(self, "source_glob", self.source_glob.strip())
        else:
            # Stages without inputs (cleanup) always run.
            object.__setattr__(self, "check_changes", False)

        if not isinstance(self.destination_root, str) or not self.destination_root.strip():
            raise TypeError("StageDescriptor.destination_root must be a non-empty string")

        if not callable(self.transform):
            raise TypeError(
                f"StageDescriptor.transform must be callable (type={type(self.transform).__name__})"
            )
        if not isinstance(self.options, StageOptions):
            raise TypeError(
                f"StageDescriptor.options must be StageOptions (type={type(self.options).__name__})"
            )

        if self.output_suffix is not None and not str(self.output_suffix).startswith("."):
            raise ValueError(
                f"StageDescriptor.output_suffix must start with '.' (got {self.output_suffix!r})"
            )

        object.__setattr__(self, "ignore", tuple(str(item).strip() for item in self.ignore if str(item).strip()))
        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    @property
    def source_base(self) -> str | None:
        if self.source_glob is None:
            return None
        return glob_base(self.source_glob)

    def completion_message(self) -> str:
        if self.summary:
            return self.summary
        return f"{self.name[:1].upper()}{self.name[1:]} task complete"

    def output_key(self) -> tuple[Any, ...]:
        """Identity of the destination subset this stage owns."""
        return (
            os.path.normpath(self.destination_root),
            self.source_glob,
            self.output_suffix,
            self.options.output_name,
        )


class StageBuilder(Protocol):
    def __call__(self, paths: Any, *, name: str, options: StageOptions) -> StageDescriptor:
        ...


@dataclass(frozen=True)
class StageRef:
    id: str
    builder: StageBuilder
    doc: str | None = None
    source: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TypeError("StageRef.id must be a non-empty string")
        object.__setattr__(self, "id", self.id.strip())

        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("StageRef.doc must be a non-empty string or None")
        if self.source is not None and (
            not isinstance(self.source, str) or not self.source.strip()
        ):
            raise TypeError("StageRef.source must be a non-empty string or None")

        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    def build(
        self,
        paths: Any,
        *,
        options: StageOptions | Mapping[str, Any] | None = None,
        name: str | None = None,
    ) -> StageDescriptor:
        stage_name = (name or self.id).strip()
        if not stage_name:
            raise ValueError("stage name must be a non-empty string")

        if not isinstance(options, StageOptions):
            options = StageOptions.from_mapping(options, path=f"stages.{stage_name}")

        descriptor = self.builder(paths, name=stage_name, options=options)
        if not isinstance(descriptor, StageDescriptor):
            raise TypeError(
                f"Stage builder returned non-StageDescriptor (stage={self.id}, type={type(descriptor).__name__})"
            )
        if descriptor.name != stage_name:
            raise ValueError(
                "Stage builder returned mismatched StageDescriptor.name: "
                f"expected={stage_name} got={descriptor.name}"
            )

        if descriptor.doc is None and self.doc:
            descriptor = replace(descriptor, doc=self.doc)
        return descriptor

