"""External tool adapters (sass, postcss, esbuild, eslint).

Each adapter locates its binary, runs it as an asyncio subprocess and turns
the tool's diagnostics into `TransformError`s carrying file/line/column.

Design principles:
  - A missing tool is a recoverable stage failure, never a crash.
  - Compilers and bundlers write straight into the destination; a failed
    compile or bundle attempt leaves no output behind.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from assetkit import PathSet, TransformError


@dataclass(frozen=True)
class ToolResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


def find_binary(
    name: str,
    *,
    explicit_path: str | None = None,
    search_dirs: Iterable[str] = (),
) -> str | None:
    """Locate a tool executable.

    Search order:
      1) explicit_path
      2) `node_modules/.bin` under each search dir (project-local installs)
      3) PATH lookup
    """
    candidates: list[str] = []

    if explicit_path:
        candidates.append(explicit_path)

    for directory in search_dirs:
        for suffix in ("", ".cmd", ".exe"):
            candidates.append(os.path.join(directory, "node_modules", ".bin", name + suffix))

    found = shutil.which(name)
    if found:
        candidates.append(found)

    for candidate in candidates:
        p = Path(candidate)
        if p.exists() and p.is_file():
            return str(p)
    return None


def require_binary(name: str, *, explicit_path: str | None, stage: str, option: str = "binary") -> str:
    binary = find_binary(name, explicit_path=explicit_path, search_dirs=(os.getcwd(),))
    if binary is None:
        raise TransformError(
            f"{name} not found (install it with npm or set stages.{stage}.{option} in config)"
        )
    return binary


async def run_tool(argv: Sequence[str], *, cwd: str | None = None) -> ToolResult:
    """Run a tool to completion without blocking the event loop."""

    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return ToolResult(
        argv=tuple(argv),
        returncode=int(process.returncode or 0),
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


_SASS_LOCATION = re.compile(r"^\s*(?P<file>\S+\.s[ac]ss) (?P<line>\d+):(?P<column>\d+)\s", re.MULTILINE)
_SASS_MESSAGE = re.compile(r"^Error: (?P<message>.+)$", re.MULTILINE)

_ESBUILD_MESSAGE = re.compile(r"\[ERROR\] (?P<message>.+)$", re.MULTILINE)
_ESBUILD_LOCATION = re.compile(
    r"^\s+(?P<file>\S+?):(?P<line>\d+):(?P<column>\d+):\s*$", re.MULTILINE
)

_ESLINT_UNIX = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?P<column>\d+): (?P<message>.+?)(?: \[(?P<severity>Error|Warning)(?:/(?P<rule>[^\]]+))?\])?$"
)


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return "tool failed without output"


def parse_sass_errors(output: str, *, fallback_file: str | None = None) -> list[TransformError]:
    message_match = _SASS_MESSAGE.search(output)
    location = _SASS_LOCATION.search(output)
    message = message_match.group("message").strip() if message_match else _first_line(output)
    if location is None:
        return [TransformError(message, file=fallback_file)]
    return [
        TransformError(
            message,
            file=location.group("file"),
            line=int(location.group("line")),
            column=int(location.group("column")),
        )
    ]


def parse_esbuild_errors(output: str, *, fallback_file: str | None = None) -> list[TransformError]:
    messages = [m.group("message").strip() for m in _ESBUILD_MESSAGE.finditer(output)]
    locations = list(_ESBUILD_LOCATION.finditer(output))
    if not messages:
        return [TransformError(_first_line(output), file=fallback_file)]

    errors: list[TransformError] = []
    for idx, message in enumerate(messages):
        if idx < len(locations):
            loc = locations[idx]
            errors.append(
                TransformError(
                    message,
                    file=loc.group("file"),
                    line=int(loc.group("line")),
                    column=int(loc.group("column")),
                )
            )
        else:
            errors.append(TransformError(message, file=fallback_file))
    return errors


@dataclass(frozen=True)
class LintDiagnostic:
    file: str
    line: int
    column: int
    message: str
    severity: str
    rule: str | None = None


def parse_eslint_unix(output: str) -> list[LintDiagnostic]:
    diagnostics: list[LintDiagnostic] = []
    for raw in output.splitlines():
        m = _ESLINT_UNIX.match(raw.strip())
        if m is None:
            continue
        diagnostics.append(
            LintDiagnostic(
                file=m.group("file"),
                line=int(m.group("line")),
                column=int(m.group("column")),
                message=m.group("message").strip(),
                severity=(m.group("severity") or "Error").lower(),
                rule=m.group("rule"),
            )
        )
    return diagnostics


def _raise_all(errors: list[TransformError], *, summary: str) -> None:
    if len(errors) == 1:
        raise errors[0]
    raise ExceptionGroup(summary, errors)


async def compile_sass(
    entry: str,
    *,
    output: str,
    binary: str,
    minify: bool = True,
    source_maps: bool = True,
) -> PathSet:
    os.makedirs(os.path.dirname(output) or ".", exist_ok=True)
    argv = [
        binary,
        f"--style={'compressed' if minify else 'expanded'}",
        "--source-map" if source_maps else "--no-source-map",
        "--no-error-css",
        entry,
        output,
    ]

    before = _snapshot((output, output + ".map"))
    result = await run_tool(argv)
    if result.returncode != 0:
        _discard_written_since(before)
        _raise_all(
            parse_sass_errors(result.stderr or result.stdout, fallback_file=entry),
            summary=f"sass failed for {entry}",
        )

    outputs = [output]
    if source_maps and os.path.exists(output + ".map"):
        outputs.append(output + ".map")
    return PathSet(outputs)


async def autoprefix_css(css: str, *, binary: str, source_maps: bool = True) -> None:
    """Run postcss with autoprefixer over a compiled stylesheet in place."""

    argv = [binary, css, "--use", "autoprefixer", "--replace"]
    argv.append("--map" if source_maps else "--no-map")

    result = await run_tool(argv)
    if result.returncode != 0:
        # A half-prefixed stylesheet must not look fresh on the next run.
        _discard_written_since({css: None, css + ".map": None})
        _raise_all(
            [TransformError(_first_line(result.stderr or result.stdout), file=css)],
            summary=f"postcss failed for {css}",
        )


def _snapshot(paths: Iterable[str]) -> dict[str, int | None]:
    state: dict[str, int | None] = {}
    for path in paths:
        try:
            state[path] = os.stat(path).st_mtime_ns
        except FileNotFoundError:
            state[path] = None
    return state


def _discard_written_since(before: dict[str, int | None]) -> None:
    """Remove every file that was created or rewritten after `before` was taken."""

    for path, mtime in _snapshot(before).items():
        if mtime is not None and mtime != before[path]:
            os.remove(path)


async def bundle_scripts(
    entry: str,
    *,
    output: str,
    binary: str,
    minify: bool = True,
    source_maps: bool = True,
) -> PathSet:
    os.makedirs(os.path.dirname(output) or ".", exist_ok=True)
    argv = [binary, entry, "--bundle", f"--outfile={output}", "--log-level=error"]
    if minify:
        argv.append("--minify")
    if source_maps:
        argv.append("--sourcemap")

    before = _snapshot((output, output + ".map"))
    result = await run_tool(argv)
    if result.returncode != 0:
        _discard_written_since(before)
        _raise_all(
            parse_esbuild_errors(result.stderr or result.stdout, fallback_file=entry),
            summary=f"esbuild failed for {entry}",
        )

    outputs = [output]
    if source_maps and os.path.exists(output + ".map"):
        outputs.append(output + ".map")
    return PathSet(outputs)


async def lint_scripts(files: Sequence[str], *, binary: str) -> list[LintDiagnostic]:
    """Run eslint; raise for errors, return warnings."""

    if not files:
        return []
    result = await run_tool([binary, "--format", "unix", *files])
    diagnostics = parse_eslint_unix(result.stdout)
    errors = [
        TransformError(
            f"{d.message} ({d.rule})" if d.rule else d.message,
            file=d.file,
            line=d.line,
            column=d.column,
        )
        for d in diagnostics
        if d.severity == "error"
    ]
    if errors:
        _raise_all(errors, summary=f"eslint reported {len(errors)} error(s)")
    if result.returncode not in (0, 1):
        # 2 means eslint itself failed (bad config, crash), not lint findings.
        raise TransformError(_first_line(result.stderr or result.stdout))
    return [d for d in diagnostics if d.severity == "warning"]
