import asyncio
import logging

from assetkit import ErrorBoundary, FileSystemError, PathSet, StageOptions, TransformError
from assetkit.engine.boundary import FailureEvent, failure_from_exception


class RecordingSink:
    def __init__(self):
        self.events: list[FailureEvent] = []

    def notify_error(self, event: FailureEvent) -> None:
        self.events.append(event)


class BrokenSink:
    def notify_error(self, event: FailureEvent) -> None:
        raise RuntimeError("sink down")


def _run(boundary, transform, inputs=("a.js",)):
    return asyncio.run(boundary.run("scripts", transform, PathSet(inputs), StageOptions()))


def test_success_returns_outputs_and_no_events():
    sink = RecordingSink()

    def transform(inputs, options):
        return PathSet(["out.js"])

    outputs, events = _run(ErrorBoundary(sink), transform)

    assert outputs == PathSet(["out.js"])
    assert events == ()
    assert sink.events == []


def test_transform_error_becomes_one_recoverable_event():
    sink = RecordingSink()

    async def transform(inputs, options):
        raise TransformError("Unexpected token", file="js/main.js", line=3, column=7)

    outputs, events = _run(ErrorBoundary(sink), transform)

    assert outputs is None
    assert len(events) == 1
    event = events[0]
    assert event.stage == "scripts"
    assert event.severity == "recoverable"
    assert event.kind == "transform"
    assert event.location() == "js/main.js:3:7"
    assert event.describe() == "[scripts] js/main.js:3:7: Unexpected token"
    assert sink.events == [event]


def test_exception_group_yields_one_event_per_leaf():
    sink = RecordingSink()

    def transform(inputs, options):
        raise ExceptionGroup(
            "lint",
            [
                TransformError("no-unused-vars", file="a.js", line=1, column=1),
                TransformError("semi", file="b.js", line=2, column=5),
            ],
        )

    _outputs, events = _run(ErrorBoundary(sink), transform)

    assert [e.source_file for e in events] == ["a.js", "b.js"]
    assert len(sink.events) == 2


def test_unexpected_exceptions_are_contained_and_logged(caplog):
    sink = RecordingSink()

    def transform(inputs, options):
        raise KeyError("boom")

    with caplog.at_level(logging.ERROR):
        outputs, events = _run(ErrorBoundary(sink, logger=logging.getLogger("test.boundary")), transform)

    assert outputs is None
    assert events[0].kind == "internal"
    assert "KeyError" in events[0].message
    assert "Unexpected error in stage scripts" in caplog.text


def test_transform_returning_none_is_a_failure():
    _outputs, events = _run(ErrorBoundary(RecordingSink()), lambda inputs, options: None)
    assert events[0].kind == "internal"
    assert "returned None" in events[0].message


def test_broken_sink_does_not_escape():
    def transform(inputs, options):
        raise TransformError("bad")

    outputs, events = _run(ErrorBoundary(BrokenSink()), transform)
    assert outputs is None
    assert len(events) == 1


def test_os_errors_map_to_filesystem_failures():
    event = failure_from_exception("fonts", FileNotFoundError(2, "No such file or directory", "a.woff"))
    assert event.kind == "filesystem"
    assert event.source_file == "a.woff"
    assert event.message == "No such file or directory"

    event = failure_from_exception("images", FileSystemError("cannot identify image file", file="x.png"))
    assert event.kind == "filesystem"
    assert event.describe() == "[images] x.png: cannot identify image file"
