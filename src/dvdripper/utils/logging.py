"""Logging utilities for structured JSON logging with TRACE level support."""

import json
import logging
import logging.handlers
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, Optional

# Add TRACE level
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")


def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
    """Log a message with severity 'TRACE'."""
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace  # type: ignore[attr-defined]

# Correlation IDs and context, local to each thread and asyncio task
_correlation_id: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)
_operation: ContextVar[Optional[str]] = ContextVar("operation", default=None)
_component: ContextVar[Optional[str]] = ContextVar("component", default=None)
_extra: ContextVar[Dict[str, Any]] = ContextVar("extra", default={})

SESSION_LOG_PREFIX = "dvdripper"

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "correlation_id",
    "operation",
    "component",
}


class ContextFilter(logging.Filter):
    """Filter to add context information to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context information to the log record."""
        record.correlation_id = _correlation_id.get()
        record.operation = _operation.get()
        record.component = _component.get()

        for key, value in _extra.get().items():
            setattr(record, key, value)

        return True


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, include_traceback: bool = True) -> None:
        """Initialize JSON formatter.

        Args:
            include_traceback: Whether to include traceback in error logs
        """
        super().__init__()
        self.include_traceback = include_traceback

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "correlation_id", None):
            log_entry["correlation_id"] = record.correlation_id

        if getattr(record, "operation", None):
            log_entry["operation"] = record.operation

        if getattr(record, "component", None):
            log_entry["component"] = record.component

        context = {}
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS and not key.startswith("_"):
                context[key] = value

        if context:
            log_entry["context"] = context

        if record.exc_info and self.include_traceback:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def session_log_filename(started_at: Optional[datetime] = None) -> str:
    """Build the per-session log file name.

    Args:
        started_at: Session start time (defaults to now)

    Returns:
        File name such as ``dvdripper_20240131_201500.log``
    """
    started_at = started_at or datetime.now()
    return f"{SESSION_LOG_PREFIX}_{started_at:%Y%m%d_%H%M%S}.log"


def setup_logging(
    log_dir: Path,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_output: bool = True,
    json_format: bool = True,
) -> Path:
    """Set up logging configuration.

    Args:
        log_dir: Directory for log files
        log_level: Logging level
        log_file: Name of the session log file (generated if None)
        max_file_size: Maximum size of log files before rotation
        backup_count: Number of backup files to keep
        console_output: Whether to output logs to console
        json_format: Whether to use JSON formatting

    Returns:
        Path of the session log file
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = TRACE_LEVEL if log_level.upper() == "TRACE" else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(TRACE_LEVEL)  # Capture all levels

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    context_filter = ContextFilter()

    # Session log is append-only; rotation only kicks in for very long sessions
    log_file_path = log_dir / (log_file or session_log_filename())
    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        mode="a",
        maxBytes=max_file_size,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)

    if json_format:
        file_formatter: logging.Formatter = JSONFormatter(include_traceback=True)
    else:
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    file_handler.setFormatter(file_formatter)
    file_handler.addFilter(context_filter)
    root_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(numeric_level)

        console_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
        )

        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    return log_file_path


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set correlation ID for the current thread or task.

    Args:
        correlation_id: Correlation ID to set (generates UUID if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return _correlation_id.get()


def set_operation_context(operation: str, component: Optional[str] = None) -> None:
    """Set operation context for the current thread or task."""
    _operation.set(operation)
    _component.set(component)


def set_context(**kwargs: Any) -> None:
    """Add custom context fields for the current thread or task."""
    _extra.set({**_extra.get(), **kwargs})


def clear_context() -> None:
    """Clear all context for the current thread or task."""
    _correlation_id.set(None)
    _operation.set(None)
    _component.set(None)
    _extra.set({})


@contextmanager
def operation_context(
    operation: str,
    component: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **kwargs: Any,
) -> Generator[str, None, None]:
    """Context manager for operation logging.

    Values are restored on exit. Each asyncio task sees only its own
    values, so concurrent operations never read each other's context.

    Args:
        operation: Operation name
        component: Component name
        correlation_id: Correlation ID (generates UUID if None)
        **kwargs: Additional context

    Yields:
        The correlation ID
    """
    actual_correlation_id = correlation_id or str(uuid.uuid4())
    tokens = [
        (_correlation_id, _correlation_id.set(actual_correlation_id)),
        (_operation, _operation.set(operation)),
        (_component, _component.set(component)),
        (_extra, _extra.set({**_extra.get(), **kwargs})),
    ]
    try:
        yield actual_correlation_id
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
