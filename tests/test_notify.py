import logging

from assetkit.engine.boundary import FailureEvent
from asset_pipeline import notify
from asset_pipeline.foundation.logging_utils import setup_operational_logger


def _event():
    return FailureEvent(stage="styles", message="Undefined variable.", source_file="main.scss", line=3, column=15)


def test_logging_sink_names_the_task_and_location(caplog):
    sink = notify.LoggingErrorSink(logging.getLogger("test.notify"))
    with caplog.at_level(logging.ERROR, logger="test.notify"):
        sink.notify_error(_event())

    assert "Styles task error: [styles] main.scss:3:15: Undefined variable." in caplog.text
    assert len(caplog.records) == 1


def test_desktop_sink_is_fire_and_forget(monkeypatch):
    launched = []
    monkeypatch.setattr(notify.subprocess, "Popen", lambda argv, **kwargs: launched.append(argv))

    sink = notify.DesktopErrorSink(binary="/usr/bin/notify-send")
    sink.notify_error(_event())

    assert launched[0][0] == "/usr/bin/notify-send"
    assert launched[0][2] == "Styles task error"


def test_desktop_sink_without_binary_is_a_no_op(monkeypatch):
    monkeypatch.setattr(notify.shutil, "which", lambda name: None)
    sink = notify.DesktopErrorSink()
    assert sink.available is False
    sink.notify_error(_event())


def test_composite_sink_survives_a_failing_member(caplog):
    class Broken:
        def notify_error(self, event):
            raise RuntimeError("down")

    sink = notify.CompositeErrorSink(
        [Broken(), notify.LoggingErrorSink(logging.getLogger("test.notify"))],
        logger=logging.getLogger("test.notify"),
    )
    with caplog.at_level(logging.ERROR, logger="test.notify"):
        sink.notify_error(_event())

    assert "Styles task error" in caplog.text


def test_reload_notifier_counts():
    reloader = notify.LoggingReloadNotifier(logging.getLogger("test.notify"))
    reloader.reload()
    reloader.reload()
    assert reloader.count == 2


def test_operational_logger_writes_file(tmp_path):
    logger, log_file = setup_operational_logger("unit", log_dir=str(tmp_path), level="WARNING")
    logger.debug("debug detail")
    for handler in logger.handlers:
        handler.flush()

    assert log_file == str(tmp_path / "unit_build.log")
    content = (tmp_path / "unit_build.log").read_text(encoding="utf-8")
    assert "| INFO | Operational logging initialized for session unit" in content
    assert "| DEBUG | debug detail" in content
    assert logger.propagate is False
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
