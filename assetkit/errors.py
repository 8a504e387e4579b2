from __future__ import annotations


class TransformError(Exception):
    """Raised by a transform when a single asset failed to convert."""

    def __init__(
        self,
        message: str,
        *,
        file: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line
        self.column = column

    def location(self) -> str | None:
        if not self.file:
            return None
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"

    def __str__(self) -> str:
        where = self.location()
        if where:
            return f"{where}: {self.message}"
        return self.message


class FileSystemError(TransformError):
    """Missing source, permission denied, or a promised output that never appeared."""


class ConfigurationError(ValueError):
    """Raised when an unknown pipeline, stage or task name is requested."""
