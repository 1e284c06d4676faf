import json
import logging

import pytest

import blockedit.logger as log_module
from blockedit.logger import LogBuffer, capture_logs, captured_logs, configure_logging, logger
from blockedit.settings.models import LoggingSettings, LogLevel


@pytest.fixture
def fresh_buffer(monkeypatch):
    monkeypatch.setattr(log_module, "_buffer_handler", None)
    yield
    handler = log_module._buffer_handler
    if handler is not None:
        logging.getLogger().removeHandler(handler)
    configure_logging()


def _record(name: str, level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


def test_log_buffer_keeps_latest_entries():
    buffer = LogBuffer(max_entries=2)
    for i in range(3):
        buffer.append(_record("blockedit", logging.INFO, f"msg {i}"))

    records = buffer.records()

    assert [r.text for r in records] == ["msg 1", "msg 2"]
    assert records[0].level == "INFO"
    assert records[0].logger == "blockedit"

    buffer.clear()
    assert buffer.records() == []


def test_capture_logs_collects_package_events(fresh_buffer):
    buffer = capture_logs()
    configure_logging(LoggingSettings(default_level=LogLevel.debug))

    logger.debug("edit block matched", file_path="m.py", line=3)

    assert captured_logs() is buffer
    assert capture_logs() is buffer
    assert any("edit block matched" in r.text for r in buffer.records())


def test_default_level_filters_lower_levels(fresh_buffer):
    buffer = capture_logs()
    configure_logging(LoggingSettings(default_level=LogLevel.warning))

    logger.info("edit block applied", file_path="m.py")
    logger.warning("symbol lookup failed", file_path="m.py")

    texts = [r.text for r in buffer.records()]
    assert not any("edit block applied" in t for t in texts)
    assert any("symbol lookup failed" in t for t in texts)


def test_json_format_renders_structured_events(fresh_buffer):
    buffer = capture_logs()
    configure_logging(LoggingSettings(default_level=LogLevel.info, json_format=True))

    logger.info("edit block applied", file_path="m.py", sequence_number=2)

    event = json.loads(buffer.records()[-1].text)
    assert event["event"] == "edit block applied"
    assert event["file_path"] == "m.py"
    assert event["sequence_number"] == 2
    assert event["level"] == "info"
    assert event["logger"] == "blockedit"


def test_enabled_loggers_override_levels():
    configure_logging(
        LoggingSettings(enabled_loggers={"git": LogLevel.error, "blockedit.cli": LogLevel.debug})
    )
    try:
        assert logging.getLogger("git").level == logging.ERROR
        assert logging.getLogger("blockedit.cli").level == logging.DEBUG
        assert logging.getLogger("blockedit").level == logging.INFO
    finally:
        logging.getLogger("git").setLevel(logging.NOTSET)
        logging.getLogger("blockedit.cli").setLevel(logging.NOTSET)
