"""
Structured logging for build-tracker.

Every record is a flat JSON object (or ``key=value`` text) carrying the
message, the active LogContext and any keyword fields. The context lives in
a ContextVar, so each asyncio task (one per poller) sees its own fields.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record logged inside a ``trace_context``."""

    trace_id: str | None = None
    job_id: str | None = None
    owner_id: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        fields = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        fields.update(self.extra)
        return fields

    def with_update(self, **kwargs: Any) -> LogContext:
        extra = {**self.extra, **kwargs.pop("extra", {})}
        return replace(self, extra=extra, **kwargs)


_LOG_CONTEXT: ContextVar[LogContext] = ContextVar("build_tracker_log_context", default=LogContext())


def current_log_context() -> LogContext:
    return _LOG_CONTEXT.get()


def generate_trace_id() -> str:
    return f"trace_{uuid.uuid4().hex[:16]}"


# =============================================================================
# Typed records
# =============================================================================


@dataclass
class PollLog:
    """One build-status query, as seen by a poller."""

    job_id: str
    attempt: int

    timestamp: str = field(default_factory=lambda: _utcnow().isoformat())
    duration_ms: float | None = None

    found: bool = True
    state: str | None = None
    progress: float | None = None
    error: str | None = None
    next_delay: float | None = None

    @property
    def message(self) -> str:
        if self.error:
            return f"Status query for {self.job_id} failed, will retry"
        if not self.found:
            return f"Build {self.job_id} not found yet, continuing to poll"
        return f"Build {self.job_id} status: {self.state}"

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Logger
# =============================================================================


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger that emits structured records.

    Example:
        ```python
        logger = get_logger()
        with logger.trace_context(job_id="b-1", owner_id="agent-42"):
            logger.info("Build submitted")
        ```
    """

    def __init__(
        self,
        name: str = "build_tracker",
        level: str = "INFO",
        json_output: bool = True,
    ):
        self.name = name
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        self._logger.setLevel(level.upper())
        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return current_log_context()

    @contextmanager
    def trace_context(self, trace_id: str | None = None, **fields: Any) -> Iterator[str]:
        """Attach fields to records logged in this block (and this task)."""
        trace_id = trace_id or current_log_context().trace_id or generate_trace_id()
        token = _LOG_CONTEXT.set(current_log_context().with_update(trace_id=trace_id, **fields))
        try:
            yield trace_id
        finally:
            _LOG_CONTEXT.reset(token)

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = {"message": message, **current_log_context().to_dict(), **fields}
        if self.json_output:
            self._logger.log(level, json.dumps(record, default=str))
        else:
            pairs = " ".join(f"{k}={v}" for k, v in record.items() if k != "message")
            self._logger.log(level, f"{message} {pairs}".rstrip())

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def log_poll(self, poll: PollLog) -> None:
        # Failed queries are expected noise, but worth a WARNING.
        level = logging.WARNING if poll.error else logging.DEBUG
        self._emit(level, poll.message, {"event_type": "poll", **poll.to_dict()})

    def log_error(self, error: Exception, message: str | None = None, **fields: Any) -> None:
        data: dict[str, Any] = {
            "event_type": "error",
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        code = getattr(error, "code", None)
        if code is not None:
            data["error_code"] = getattr(code, "value", code)
        if hasattr(error, "retryable"):
            data["retryable"] = error.retryable
        context = getattr(error, "context", None)
        if context is not None and hasattr(context, "to_dict"):
            data["error_context"] = context.to_dict()
        data.update(fields)
        self._emit(logging.ERROR, message or f"Error: {error}", data)


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """Merges a JSON message with level, logger name and timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        output: dict[str, Any] = {
            "timestamp": _utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            parsed = None
        if isinstance(parsed, dict):
            output.update(parsed)
        else:
            output["message"] = text
        if record.exc_info:
            output["exception"] = self.formatException(record.exc_info)
        return json.dumps(output, default=str)


class TextFormatter(logging.Formatter):
    """Colored single-line output for terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = "\033[0m" if color else ""
        stamp = _utcnow().strftime("%H:%M:%S.%f")[:-3]
        return f"{stamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def redact_token(token: str | None) -> str:
    """Mask an auth credential for logging."""
    if not token:
        return "<not set>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


@dataclass
class Timer:
    start: float = field(default_factory=time.perf_counter)
    end: float | None = None

    def stop(self) -> float:
        self.end = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        return ((self.end or time.perf_counter()) - self.start) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Default logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger() -> StructuredLogger:
    """Return the package logger, creating it with defaults on first use."""
    global _default_logger
    if _default_logger is None:
        _default_logger = StructuredLogger()
    return _default_logger


def configure_logging(level: str = "INFO", json_output: bool = True) -> StructuredLogger:
    """Replace the package logger. Re-applies the formatter on existing handlers."""
    global _default_logger
    _default_logger = StructuredLogger(level=level, json_output=json_output)
    formatter = JSONFormatter() if json_output else TextFormatter()
    for handler in _default_logger._logger.handlers:
        handler.setFormatter(formatter)
    return _default_logger


__all__ = [
    "LogContext",
    "PollLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "Timer",
    "timed",
    "current_log_context",
    "generate_trace_id",
    "redact_token",
    "get_logger",
    "configure_logging",
]
