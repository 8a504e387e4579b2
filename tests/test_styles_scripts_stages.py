import os

import pytest

from assetkit import PipelineRunner
from assetkit.engine import NullStageRecorder, single
from asset_pipeline import tools
from asset_pipeline.framework.config import ProjectPaths
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages import lint, scripts, styles
from asset_pipeline.tools import ToolResult


class RecordingSink:
    def __init__(self):
        self.events = []

    def notify_error(self, event):
        self.events.append(event)


def _write(path, text=""):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)


@pytest.fixture
def project(tmp_path):
    app = tmp_path / "app"
    dist = tmp_path / "web"
    _write(str(app / "scss" / "main.scss"), '@import "vars";\nbody { color: $c; }\n')
    _write(str(app / "scss" / "_vars.scss"), "$c: red;\n")
    _write(str(app / "js" / "main.js"), "import './util';\n")
    _write(str(app / "js" / "util.js"), "export const x = 1;\n")
    fake_bin = tmp_path / "bin"
    for name in ("sass", "esbuild", "eslint"):
        _write(str(fake_bin / name), "#!/bin/sh\n")
    return {
        "inputs": BuildInputs(paths=ProjectPaths(app_dir=str(app), dist_dir=str(dist))),
        "app": app,
        "dist": dist,
        "bin": fake_bin,
    }


def _runner(stage, sink=None):
    return PipelineRunner([single(stage)], sink=sink, recorder=NullStageRecorder())


def _fake_sass(calls):
    async def run_tool(argv, *, cwd=None):
        calls.append(list(argv))
        entry, output = argv[-2], argv[-1]
        _write(output, f"/* compiled from {os.path.basename(entry)} */")
        if "--source-map" in argv:
            _write(output + ".map", "{}")
        return ToolResult(argv=tuple(argv), returncode=0, stdout="", stderr="")

    return run_tool


def test_styles_compiles_entry_point_with_map_and_is_fresh_on_rerun(project, monkeypatch):
    calls = []
    monkeypatch.setattr(tools, "run_tool", _fake_sass(calls))
    stage = styles.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "sass")})
    runner = _runner(stage)

    first = runner.run_sync("styles")

    css = project["dist"] / "css" / "main.min.css"
    assert first.ok
    assert css.exists()
    assert (project["dist"] / "css" / "main.min.css.map").exists()
    assert set(first.stage("styles").outputs) == {str(css), str(css) + ".map"}
    assert "--style=compressed" in calls[0]

    second = runner.run_sync("styles")
    assert second.stage("styles").skipped_reason == "fresh"
    assert len(calls) == 1


def test_styles_rebuilds_when_a_partial_changes(project, monkeypatch):
    calls = []
    monkeypatch.setattr(tools, "run_tool", _fake_sass(calls))
    stage = styles.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "sass")})
    runner = _runner(stage)
    runner.run_sync("styles")

    css = project["dist"] / "css" / "main.min.css"
    future = os.stat(css).st_mtime_ns + 5_000_000_000
    os.utime(project["app"] / "scss" / "_vars.scss", ns=(future, future))

    result = runner.run_sync("styles")
    assert result.stage("styles").ran
    assert len(calls) == 2


def test_styles_options_toggle_minify_maps_and_mirror(project, monkeypatch):
    calls = []
    monkeypatch.setattr(tools, "run_tool", _fake_sass(calls))
    stage = styles.STAGE.build(
        project["inputs"],
        options={
            "binary": str(project["bin"] / "sass"),
            "minify": False,
            "source_maps": False,
            "mirror_root": "css",
        },
    )

    result = _runner(stage).run_sync("styles")

    assert result.ok
    assert "--style=expanded" in calls[0]
    assert "--no-source-map" in calls[0]
    assert not (project["dist"] / "css" / "main.min.css.map").exists()
    assert (project["app"] / "css" / "main.min.css").exists()


def test_autoprefix_runs_postcss_over_the_compiled_stylesheet(project, monkeypatch):
    calls = []
    compile_css = _fake_sass(calls)

    async def run_tool(argv, *, cwd=None):
        if os.path.basename(argv[0]) == "postcss":
            calls.append(list(argv))
            with open(argv[1], "a", encoding="utf-8") as handle:
                handle.write("/* prefixed */")
            return ToolResult(argv=tuple(argv), returncode=0, stdout="", stderr="")
        return await compile_css(argv, cwd=cwd)

    monkeypatch.setattr(tools, "run_tool", run_tool)
    stage = styles.STAGE.build(
        project["inputs"],
        options={
            "binary": str(project["bin"] / "sass"),
            "autoprefix": True,
            "postcss_binary": str(project["bin"] / "postcss"),
        },
    )
    _write(str(project["bin"] / "postcss"), "#!/bin/sh\n")

    result = _runner(stage).run_sync("styles")

    css = project["dist"] / "css" / "main.min.css"
    assert result.ok
    assert calls[1][1:] == [str(css), "--use", "autoprefixer", "--replace", "--map"]
    assert css.read_text(encoding="utf-8").endswith("/* prefixed */")


def test_failed_autoprefix_removes_the_stylesheet(project, monkeypatch):
    compile_css = _fake_sass([])

    async def run_tool(argv, *, cwd=None):
        if os.path.basename(argv[0]) == "postcss":
            return ToolResult(argv=tuple(argv), returncode=1, stdout="", stderr="Error: Cannot find autoprefixer\n")
        return await compile_css(argv, cwd=cwd)

    monkeypatch.setattr(tools, "run_tool", run_tool)
    _write(str(project["bin"] / "postcss"), "#!/bin/sh\n")
    stage = styles.STAGE.build(
        project["inputs"],
        options={
            "binary": str(project["bin"] / "sass"),
            "autoprefix": True,
            "postcss_binary": str(project["bin"] / "postcss"),
        },
    )

    result = _runner(stage).run_sync("styles")

    failures = result.stage("styles").failures
    assert [f.message for f in failures] == ["Error: Cannot find autoprefixer"]
    assert not (project["dist"] / "css" / "main.min.css").exists()


def test_missing_sass_binary_is_a_recoverable_failure(project, monkeypatch):
    monkeypatch.setattr(tools, "find_binary", lambda name, **kwargs: None)
    sink = RecordingSink()
    stage = styles.STAGE.build(project["inputs"])

    result = _runner(stage, sink).run_sync("styles")

    assert not result.ok
    assert "sass not found" in sink.events[0].message


def test_failed_sass_compile_leaves_no_css_and_rerun_is_not_fresh(project, monkeypatch):
    calls = []

    async def failing_sass(argv, *, cwd=None):
        calls.append(list(argv))
        _write(argv[-1], "/* Error: Undefined variable. */")
        return ToolResult(
            argv=tuple(argv),
            returncode=65,
            stdout="",
            stderr="Error: Undefined variable.\n  app/scss/main.scss 2:15  root stylesheet\n",
        )

    monkeypatch.setattr(tools, "run_tool", failing_sass)
    sink = RecordingSink()
    stage = styles.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "sass")})
    runner = _runner(stage, sink)

    first = runner.run_sync("styles")
    second = runner.run_sync("styles")

    assert "--no-error-css" in calls[0]
    assert not (project["dist"] / "css" / "main.min.css").exists()
    assert not first.ok
    assert second.stage("styles").ran
    assert second.stage("styles").skipped_reason is None
    assert len(calls) == 2
    assert len(sink.events) == 2


ESBUILD_SYNTAX_ERROR = """\
✘ [ERROR] Expected ";" but found "}}"

    {path}:3:12:
      3 │   let x = }}
        ╵             ^

1 error
"""


def test_scripts_syntax_error_reports_one_failure_and_leaves_no_bundle(project, monkeypatch):
    entry = str(project["app"] / "js" / "main.js")

    async def failing_esbuild(argv, *, cwd=None):
        outfile = next(a.split("=", 1)[1] for a in argv if a.startswith("--outfile="))
        _write(outfile, "partial")
        return ToolResult(
            argv=tuple(argv),
            returncode=1,
            stdout="",
            stderr=ESBUILD_SYNTAX_ERROR.format(path=entry),
        )

    monkeypatch.setattr(tools, "run_tool", failing_esbuild)
    sink = RecordingSink()
    stage = scripts.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "esbuild")})

    result = _runner(stage, sink).run_sync("scripts")

    failures = result.stage("scripts").failures
    assert len(failures) == 1
    assert failures[0].source_file == entry
    assert (failures[0].line, failures[0].column) == (3, 12)
    assert failures[0].message == 'Expected ";" but found "}"'
    assert not (project["dist"] / "js" / "main.min.js").exists()
    assert len(sink.events) == 1


def test_scripts_bundle_success_writes_min_js(project, monkeypatch):
    calls = []

    async def esbuild(argv, *, cwd=None):
        calls.append(list(argv))
        outfile = next(a.split("=", 1)[1] for a in argv if a.startswith("--outfile="))
        _write(outfile, "bundle")
        _write(outfile + ".map", "{}")
        return ToolResult(argv=tuple(argv), returncode=0, stdout="", stderr="")

    monkeypatch.setattr(tools, "run_tool", esbuild)
    stage = scripts.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "esbuild")})

    result = _runner(stage).run_sync("scripts")

    assert result.ok
    assert (project["dist"] / "js" / "main.min.js").exists()
    assert "--bundle" in calls[0] and "--minify" in calls[0] and "--sourcemap" in calls[0]


def test_lint_reports_each_error_and_ignores_node_modules(project, monkeypatch):
    _write(str(project["app"] / "js" / "node_modules" / "dep" / "index.js"), "")
    seen = []

    async def eslint(argv, *, cwd=None):
        files = [a for a in argv if a.endswith(".js")]
        seen.extend(files)
        main_js = next(f for f in files if f.endswith("main.js"))
        util_js = next(f for f in files if f.endswith("util.js"))
        stdout = (
            f"{main_js}:1:8: 'x' is defined but never used. [Error/no-unused-vars]\n"
            f"{util_js}:1:20: Missing semicolon. [Warning/semi]\n"
            f"{util_js}:2:1: Unexpected var. [Error/no-var]\n"
            "\n3 problems\n"
        )
        return ToolResult(argv=tuple(argv), returncode=1, stdout=stdout, stderr="")

    monkeypatch.setattr(tools, "run_tool", eslint)
    sink = RecordingSink()
    stage = lint.STAGE.build(project["inputs"], options={"binary": str(project["bin"] / "eslint")})

    result = _runner(stage, sink).run_sync("lint")

    assert not any("node_modules" in f for f in seen)
    assert [(e.line, e.column) for e in result.stage("lint").failures] == [(1, 8), (2, 1)]
    assert len(sink.events) == 2


def test_parse_sass_errors_extracts_location():
    output = (
        "Error: Undefined variable.\n"
        "  ╷\n"
        "3 │ body { color: $missing; }\n"
        "  │               ^^^^^^^^\n"
        "  ╵\n"
        "  app/scss/main.scss 3:15  root stylesheet\n"
    )
    (error,) = tools.parse_sass_errors(output)
    assert error.message == "Undefined variable."
    assert (error.file, error.line, error.column) == ("app/scss/main.scss", 3, 15)


def test_find_binary_prefers_explicit_then_project_local(tmp_path, monkeypatch):
    monkeypatch.setattr(tools.shutil, "which", lambda name: None)
    local = tmp_path / "node_modules" / ".bin" / "sass"
    _write(str(local), "")
    explicit = tmp_path / "custom-sass"
    _write(str(explicit), "")

    assert tools.find_binary("sass", explicit_path=str(explicit), search_dirs=[str(tmp_path)]) == str(explicit)
    assert tools.find_binary("sass", search_dirs=[str(tmp_path)]) == str(local)
    assert tools.find_binary("esbuild", search_dirs=[str(tmp_path)]) is None
