"""
Symscout Telemetry — correlation ids, structured logs, error reporting.

Three pieces every other module leans on:

* a correlation-id context variable, set once per operation so every log
  record and error report emitted inside it can be stitched together;
* ``JsonFormatter`` / ``TextFormatter`` plus :func:`configure_logging`
  for applications that want Symscout's records on stdout;
* the :class:`ErrorReporter` contract for the external error-tracking
  sink, with a logging-backed default and an OpenTelemetry implementation.

The library itself never configures logging at import time.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

COMPONENT = "symscout"

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "symscout_correlation_id", default=None
)


# =============================================================================
# Correlation context
# =============================================================================

def new_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Correlation id of the operation currently executing, if any."""
    return _correlation_id.get()


@contextlib.contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of one operation.

    A fresh uuid4 is generated when *correlation_id* is None.  The previous
    id is restored on exit, so nested operations each get their own id
    while still running inside an asyncio task that owns the outer one.
    """
    cid = correlation_id or new_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


def log_event(
    logger: logging.Logger,
    level: int,
    operation: str,
    message: str = "",
    *,
    request_id: Optional[str] = None,
    exc_info: bool = False,
    **data: Any,
) -> None:
    """Emit one structured record: ``operation`` plus arbitrary ``data`` fields."""
    if not logger.isEnabledFor(level):
        return
    extra: Dict[str, Any] = {"operation": operation, "data": data}
    if request_id:
        extra["request_id"] = request_id
    logger.log(level, message or operation, extra=extra, exc_info=exc_info)


# =============================================================================
# Formatters
# =============================================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per record, ready for a log-shipping sink."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "operation": getattr(record, "operation", None),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        cid = getattr(record, "correlation_id", None) or get_correlation_id()
        if cid:
            parts.append(f"[{cid[:8]}]")
        operation = getattr(record, "operation", None)
        if operation and operation != record.getMessage():
            parts.append(f"({operation})")
        parts.append(f"- {record.getMessage()}")
        data = getattr(record, "data", None)
        if data:
            parts.append(" ".join(f"{k}={v}" for k, v in data.items()))
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """Attach a stdout handler to the ``symscout`` logger.

    Safe to call repeatedly; existing handlers are replaced.  Noisy HTTP
    loggers are turned down to WARNING.
    """
    root = logging.getLogger(COMPONENT)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if log_format == "json" else TextFormatter())
    root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return root


# =============================================================================
# Error tracking
# =============================================================================

class ErrorReporter(Protocol):
    """Contract for the external error-tracking sink."""

    def capture_exception(
        self,
        exc: BaseException,
        *,
        tags: Mapping[str, Any],
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...

    def add_breadcrumb(
        self,
        message: str,
        *,
        category: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...


class LoggingErrorReporter:
    """Default reporter: writes captured exceptions to ``symscout.errors``."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(f"{COMPONENT}.errors")

    def capture_exception(self, exc, *, tags, extra=None) -> None:
        self._logger.error(
            f"{type(exc).__name__}: {exc}",
            extra={
                "operation": tags.get("operation"),
                "correlation_id": tags.get("correlation_id"),
                "data": {"tags": dict(tags), "extra": dict(extra or {})},
            },
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    def add_breadcrumb(self, message, *, category, data=None) -> None:
        self._logger.debug(
            message,
            extra={"operation": category, "data": dict(data or {})},
        )


class OpenTelemetryErrorReporter:
    """Records exceptions on the current OpenTelemetry span.

    Tags and extra context become span attributes prefixed with
    ``symscout.``; breadcrumbs become span events.  With no SDK installed
    the API's no-op tracer makes this reporter free.
    """

    def __init__(self, tracer_name: str = COMPONENT):
        self._tracer = trace.get_tracer(tracer_name)

    @staticmethod
    def _attributes(prefix: str, values: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {}
        for key, value in (values or {}).items():
            if value is None:
                continue
            if not isinstance(value, (str, bool, int, float)):
                value = json.dumps(value, default=str)
            attrs[f"{prefix}.{key}"] = value
        return attrs

    def capture_exception(self, exc, *, tags, extra=None) -> None:
        span = trace.get_current_span()
        if not span.is_recording():
            # No active span: open a short one so the error is not lost
            with self._tracer.start_as_current_span(
                f"{COMPONENT}.{tags.get('operation', 'error')}"
            ) as span:
                self._record(span, exc, tags, extra)
            return
        self._record(span, exc, tags, extra)

    def _record(self, span, exc, tags, extra) -> None:
        attributes = self._attributes(COMPONENT, tags)
        attributes.update(self._attributes(f"{COMPONENT}.extra", extra))
        span.record_exception(exc, attributes=attributes)
        span.set_status(Status(StatusCode.ERROR, str(exc)))

    def add_breadcrumb(self, message, *, category, data=None) -> None:
        span = trace.get_current_span()
        attributes = {"category": category}
        attributes.update(self._attributes(COMPONENT, data))
        span.add_event(message, attributes=attributes)


def report_error(
    reporter: ErrorReporter,
    exc: BaseException,
    operation: str,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Send *exc* to *reporter* with the standard Symscout tags.

    A failing reporter must never mask the original error, so its own
    exceptions are logged and dropped.
    """
    tags = {
        "component": COMPONENT,
        "operation": operation,
        "correlation_id": correlation_id or get_correlation_id(),
    }
    try:
        reporter.capture_exception(exc, tags=tags, extra=extra)
    except Exception as report_exc:
        logging.getLogger(__name__).warning(
            f"Error reporter failed while reporting {type(exc).__name__}: {report_exc}"
        )
