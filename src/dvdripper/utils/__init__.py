"""Utility functions for DVD Ripper."""

from .cancellation import CancellationRegistration, CancellationToken
from .filename import normalize_filename, normalize_to_ascii, sanitize_filename
from .logging import (
    get_logger,
    operation_context,
    session_log_filename,
    setup_logging,
)
from .progress import (
    CallbackProgressCallback,
    ConsoleProgressCallback,
    ProgressCallback,
    ProgressSample,
    SilentProgressCallback,
)
from .reporting import LineReporter, LogSink
from .time_format import format_clock, format_duration_human_readable

__all__ = [
    # Cancellation
    "CancellationToken",
    "CancellationRegistration",
    # Filename utilities
    "normalize_to_ascii",
    "sanitize_filename",
    "normalize_filename",
    # Logging utilities
    "get_logger",
    "operation_context",
    "session_log_filename",
    "setup_logging",
    # Progress utilities
    "ProgressSample",
    "ProgressCallback",
    "ConsoleProgressCallback",
    "SilentProgressCallback",
    "CallbackProgressCallback",
    # Job log lines
    "LineReporter",
    "LogSink",
    # Time formatting
    "format_duration_human_readable",
    "format_clock",
]
