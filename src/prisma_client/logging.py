"""
Structured Logging for prisma-client.

This module provides:
- Structured JSON logging with consistent fields
- Operation request/response logging with trace correlation
- Nested-write step logging for the local engine
- Log level filtering and formatting options
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

_SECRET_KEYS = frozenset({"secret", "token", "authorization"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    trace_id: str | None = None
    request_id: str | None = None
    endpoint: str | None = None
    model: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            trace_id=kwargs.get("trace_id", self.trace_id),
            request_id=kwargs.get("request_id", self.request_id),
            endpoint=kwargs.get("endpoint", self.endpoint),
            model=kwargs.get("model", self.model),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class RequestLog:
    """Log record for an outbound operation."""

    request_id: str
    model: str
    operation: str
    field_name: str

    timestamp: str = field(default_factory=_now_iso)

    # Request details (sanitized, no variable values)
    query_hash: str | None = None
    variable_names: list[str] = field(default_factory=list)
    nested_writes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ResponseLog:
    """Log record for the outcome of an operation."""

    request_id: str
    model: str
    operation: str

    # Status
    success: bool = True
    status_code: int | None = None
    error: str | None = None

    # Timing
    timestamp: str = field(default_factory=_now_iso)
    duration_ms: float | None = None

    # Result details
    record_count: int | None = None
    batch_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class WriteLog:
    """Log record for a single applied write step."""

    action: str
    model: str
    record_id: str | None = None
    parent_model: str | None = None
    relation_field: str | None = None
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured JSON output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("prisma_client")

        with logger.request_context(model="User", operation="create") as request_id:
            logger.log_request(RequestLog(...))
            # ... send operation ...
            logger.log_response(ResponseLog(...))
        ```
    """

    def __init__(
        self,
        name: str = "prisma_client",
        level: str = "INFO",
        json_output: bool = True,
        include_timestamp: bool = True,
        redact_secrets: bool = True,
    ):
        self.name = name
        self.json_output = json_output
        self.include_timestamp = include_timestamp
        self.redact_secrets = redact_secrets

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        # per task, so concurrent operations keep their own ids
        self._context: ContextVar[LogContext] = ContextVar(f"log_context:{name}", default=LogContext())

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return self._context.get()

    @contextmanager
    def trace_context(
        self,
        trace_id: str | None = None,
        **kwargs,
    ) -> Iterator[str]:
        """
        Context manager for trace correlation.

        Args:
            trace_id: Trace ID (auto-generated if not provided)
            **kwargs: Additional context fields

        Yields:
            The trace ID
        """
        trace_id = trace_id or generate_trace_id()
        token = self._context.set(self.context.with_update(trace_id=trace_id, **kwargs))

        try:
            yield trace_id
        finally:
            self._context.reset(token)

    @contextmanager
    def request_context(
        self,
        model: str,
        operation: str,
        endpoint: str | None = None,
    ) -> Iterator[str]:
        """
        Context manager for a single operation.

        Yields:
            The request ID
        """
        request_id = generate_request_id()

        with self.trace_context(
            trace_id=self.context.trace_id,
            request_id=request_id,
            endpoint=endpoint,
            model=model,
            operation=operation,
        ):
            yield request_id

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        record_data = {
            "message": message,
            **self.context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.redact_secrets:
            for key in _SECRET_KEYS.intersection(record_data):
                record_data[key] = redact_secret(record_data[key])

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}")

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_request(self, request: RequestLog) -> None:
        """Log an outbound operation."""
        self._log(
            logging.DEBUG,
            f"{request.field_name} on {request.model}",
            event_type="request",
            data=request.to_dict(),
        )

    def log_response(self, response: ResponseLog) -> None:
        """Log an operation outcome."""
        level = logging.DEBUG if response.success else logging.WARNING
        message = f"{response.operation} {response.model} {'ok' if response.success else 'failed'}"
        if response.duration_ms is not None:
            message += f" ({response.duration_ms:.0f}ms)"
        self._log(level, message, event_type="response", data=response.to_dict())

    def log_write(self, write: WriteLog) -> None:
        """Log an applied write step."""
        self._log(
            logging.DEBUG,
            f"{write.action} {write.model}",
            event_type="write",
            data=write.to_dict(),
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _now_iso(),
            "level": record.levelname,
            "logger": record.name,
        }

        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"trace_{uuid.uuid4().hex[:16]}"


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def redact_secret(secret: str | None) -> str:
    """Redact a secret or token for safe logging."""
    if not secret:
        return "<not set>"
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}...{secret[-4:]}"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... ({len(text)} chars total)"


# =============================================================================
# Timing Utilities
# =============================================================================


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


__all__ = [
    # Context
    "LogContext",
    # Log records
    "RequestLog",
    "ResponseLog",
    "WriteLog",
    # Logger
    "StructuredLogger",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Timing
    "Timer",
    "timed",
    # Utilities
    "generate_trace_id",
    "generate_request_id",
    "redact_secret",
    "truncate_for_log",
]
