"""
Central logging configuration for the oral examiner.

Provides:
- Structured logging (JSON in production, human-readable in development)
- Correlation via contextvars: request_id (set by middleware) and
  exam_session_id (set by the session orchestrator while it holds a session)

Usage:
    from checkride.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Graded answer", extra={"outcome": verdict.outcome.value})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
exam_session_var: ContextVar[Optional[str]] = ContextVar("exam_session_id", default=None)

# LogRecord attributes that are never copied into the JSON payload
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "request_id", "exam_session_id",
))


def get_request_id() -> Optional[str]:
    """Get the current request ID from context, if set."""
    return request_id_var.get()


@contextmanager
def exam_session_context(session_id: Any) -> Iterator[None]:
    """Tag every log record emitted inside the block with the exam session id."""
    token = exam_session_var.set(str(session_id))
    try:
        yield
    finally:
        exam_session_var.reset(token)


class CorrelationFilter(logging.Filter):
    """Adds request_id and exam_session_id to log records from context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        record.exam_session_id = exam_session_var.get() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON for production log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("request_id", "exam_session_id"):
            value = getattr(record, attr, None)
            if value and value != "-":
                log_obj[attr] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Fields passed via extra=
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or value is None:
                continue
            try:
                json.dumps(value)
                log_obj[key] = value
            except (TypeError, ValueError):
                log_obj[key] = str(value)

        return json.dumps(log_obj)


def _create_dev_formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s exam=%(exam_session_id)s %(message)s",
        datefmt="%H:%M:%S",
    )


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: 'development' or 'production'
        debug: If True, use DEBUG level regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Drop existing handlers so reloads don't duplicate output
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(CorrelationFilter())

    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(_create_dev_formatter())

    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name."""
    return logging.getLogger(name)
