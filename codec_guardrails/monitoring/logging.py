"""
Structured logging for guardrail processes.

Every entry is an event name, a message for people and key/value fields
for tooling. Text lines are what CI readers see in the runner output:

    12:00:00.123 INFO     memory/rss_sample: Frame 1000: +1.20 MB [frame=1000]

With GUARDRAILS_LOG_FORMAT=json the same entry is written as one JSON
object per line.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TextIO

# Bound loggers share their output stream, so they share the lock too.
_write_lock = threading.Lock()


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        """Matching stdlib logging level."""
        return getattr(logging, self.name)


@dataclass(frozen=True)
class LogEvent:
    """One structured log entry.

    Attributes:
        level: Severity of the entry.
        event: Short machine-friendly name ("rss_sample", "verdict").
        message: Human-readable text.
        fields: Structured data, bound context included.
        scope: Guardrail the entry belongs to, if any.
        created: Unix timestamp.
    """

    level: LogLevel
    event: str
    message: str = ""
    fields: dict[str, Any] = field(default_factory=dict)
    scope: str = ""
    created: float = field(default_factory=time.time)

    def as_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "time": round(self.created, 3),
            "level": self.level.value,
            "scope": self.scope,
            "event": self.event,
            "message": self.message,
        }
        entry.update(self.fields)
        return entry

    def as_json(self) -> str:
        return json.dumps(self.as_dict(), default=str)

    def as_text(self) -> str:
        clock = time.strftime("%H:%M:%S", time.localtime(self.created))
        millis = int(self.created % 1 * 1000)
        name = f"{self.scope}/{self.event}" if self.scope else self.event

        line = f"{clock}.{millis:03d} {self.level.name:<8} {name}"
        if self.message:
            line += f": {self.message}"
        if self.fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in self.fields.items()) + "]"
        return line


class StructuredLogger:
    """Event logger used by the guardrails.

    Output goes to stderr unless a stream is given. The stream is looked
    up on every write, so redirected or captured stderr is honoured.

    Example:
        logger = StructuredLogger(level=LogLevel.DEBUG)
        memory_logger = logger.bind(guardrail="memory")
        memory_logger.info("rss_sample", "Frame 1000: +1.20 MB", frame=1000)

    Binding `guardrail=` sets the scope shown in front of each event; any
    other bound keys are added to every entry's fields.
    """

    def __init__(
        self,
        scope: str = "",
        level: LogLevel = LogLevel.INFO,
        output: TextIO | None = None,
        json_format: bool = False,
        context: dict[str, Any] | None = None,
    ):
        self.scope = scope
        self.level = level
        self.json_format = json_format
        self._output = output
        self._context = dict(context or {})

    def bind(self, **context: Any) -> "StructuredLogger":
        """Logger with extra context; this logger is unchanged."""
        scope = str(context.pop("guardrail", self.scope))
        return StructuredLogger(
            scope,
            self.level,
            self._output,
            self.json_format,
            {**self._context, **context},
        )

    def enabled_for(self, level: LogLevel) -> bool:
        return level.numeric >= self.level.numeric

    def log(self, level: LogLevel, event: str, message: str = "", **fields: Any) -> None:
        if not self.enabled_for(level):
            return

        entry = LogEvent(level, event, message, {**self._context, **fields}, self.scope)
        line = entry.as_json() if self.json_format else entry.as_text()
        stream = self._output or sys.stderr
        with _write_lock:
            stream.write(line + "\n")
            stream.flush()

    def debug(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(LogLevel.DEBUG, event, message, **fields)

    def info(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(LogLevel.INFO, event, message, **fields)

    def warning(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(LogLevel.WARNING, event, message, **fields)

    def error(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(LogLevel.ERROR, event, message, **fields)

    def critical(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(LogLevel.CRITICAL, event, message, **fields)

    def exception(self, error: BaseException, **fields: Any) -> None:
        """Log an unexpected error as the terminal failure of this process."""
        self.error(
            "failure",
            f"FAILURE: {error}",
            error_type=type(error).__name__,
            **fields,
        )


_global_logger: StructuredLogger | None = None


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    output: TextIO | None = None,
    json_format: bool = False,
) -> StructuredLogger:
    """Install the process-wide logger.

    The stdlib root logger gets the same threshold, so module loggers
    (logging.getLogger(__name__)) in the target code follow it.
    """
    global _global_logger

    if isinstance(level, str):
        level = LogLevel(level)

    _global_logger = StructuredLogger(level=level, output=output, json_format=json_format)

    logging.basicConfig(
        stream=output or sys.stderr,
        format="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger().setLevel(level.numeric)

    return _global_logger


def get_logger() -> StructuredLogger:
    """The process-wide logger, created with defaults on first use."""
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger()

    return _global_logger
