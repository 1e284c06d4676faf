from __future__ import annotations

import logging
import sys
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, List, Optional

import structlog

from blockedit.settings.models import LoggingSettings, LogLevel

# Loggers owned by this package; default_level applies to these.
PACKAGE_LOGGERS = ("blockedit",)

_LEVELS = {
    LogLevel.debug: logging.DEBUG,
    LogLevel.info: logging.INFO,
    LogLevel.warning: logging.WARNING,
    LogLevel.error: logging.ERROR,
    LogLevel.critical: logging.CRITICAL,
}


@dataclass
class CapturedRecord:
    logger: str
    levelno: int
    level: str
    text: str
    timestamp: float

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "CapturedRecord":
        return cls(
            logger=record.name,
            levelno=record.levelno,
            level=record.levelname,
            text=record.getMessage(),
            timestamp=record.created,
        )


class LogBuffer:
    """Most recent log records, kept for `blockedit apply --show-log`."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._entries: Deque[CapturedRecord] = deque(maxlen=max_entries)

    def append(self, record: logging.LogRecord) -> None:
        self._entries.append(CapturedRecord.from_record(record))

    def records(self) -> List[CapturedRecord]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class _BufferHandler(logging.Handler):
    def __init__(self, buffer: LogBuffer) -> None:
        super().__init__()
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        self.buffer.append(record)


_buffer_handler: Optional[_BufferHandler] = None


def _writes_to_terminal(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and getattr(
        handler, "stream", None
    ) in (sys.stdout, sys.stderr)


def capture_logs(max_entries: Optional[int] = None) -> LogBuffer:
    """
    Send log records to an in-memory buffer instead of the terminal.
    Later calls return the buffer installed first.
    """
    global _buffer_handler
    if _buffer_handler is None:
        _buffer_handler = _BufferHandler(LogBuffer(max_entries))

    root = logging.getLogger()
    for handler in [h for h in root.handlers if _writes_to_terminal(h)]:
        root.removeHandler(handler)
    if _buffer_handler not in root.handlers:
        root.addHandler(_buffer_handler)
    return _buffer_handler.buffer


def captured_logs() -> Optional[LogBuffer]:
    return _buffer_handler.buffer if _buffer_handler is not None else None


def _processors(json_format: bool) -> List[Any]:
    if json_format:
        return [
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    return [
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.dev.ConsoleRenderer(),
    ]


def _configure_structlog(json_format: bool = False) -> None:
    # Not cached, so configure_logging can switch renderers after import.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
        processors=_processors(json_format),
    )


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    settings = settings or LoggingSettings()
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(_LEVELS[settings.default_level])
    for name, level in settings.enabled_loggers.items():
        logging.getLogger(name).setLevel(_LEVELS[level])
    _configure_structlog(settings.json_format)


logging.basicConfig(level=logging.WARNING, format="%(message)s", stream=sys.stderr)
_configure_structlog()

logger: structlog.BoundLogger = structlog.get_logger("blockedit")
