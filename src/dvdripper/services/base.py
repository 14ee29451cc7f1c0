"""Base service class for DVD Ripper services.

This module provides a common base class for all DVD Ripper services
with shared functionality like settings injection, logging setup, and
per-job line reporting.
"""

from typing import Any, Optional

from ..config.settings import Settings
from ..utils.logging import get_logger
from ..utils.reporting import LineReporter, LogSink


class BaseService:
    """Base class for all DVD Ripper services.

    Provides common functionality including:
    - Settings injection and management
    - Logging setup with service-specific loggers
    - Line reporters that mirror log messages to a caller's sink
    """

    def __init__(self, settings: Settings):
        """Initialize the base service.

        Args:
            settings: Application settings object
        """
        self.settings = settings
        self.logger = get_logger(self.__class__.__module__)

        service_name = self.__class__.__name__
        self.logger.debug(f"{service_name} initialized with settings")

    def _reporter(
        self, sink: Optional[LogSink] = None, reporter: Optional[LineReporter] = None
    ) -> LineReporter:
        """Get a line reporter for one job.

        Args:
            sink: Caller's line sink, used when no reporter is given
            reporter: Existing job reporter whose sink should be shared

        Returns:
            LineReporter logging under this service's logger
        """
        if reporter is not None:
            return reporter.with_logger(self.logger)
        return LineReporter(self.logger, sink)

    def _log_operation_start(self, operation: str, **context: Any) -> None:
        """Log the start of an operation with context.

        Args:
            operation: Name of the operation being started
            **context: Additional context to include in the log
        """
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        if context_str:
            self.logger.info(f"Starting {operation} (context: {context_str})")
        else:
            self.logger.info(f"Starting {operation}")

    def _log_operation_complete(self, operation: str, **context: Any) -> None:
        """Log the completion of an operation with context.

        Args:
            operation: Name of the operation that completed
            **context: Additional context to include in the log
        """
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        if context_str:
            self.logger.info(f"Completed {operation} (context: {context_str})")
        else:
            self.logger.info(f"Completed {operation}")

    def _log_operation_error(
        self, operation: str, error: Exception, **context: Any
    ) -> None:
        """Log an operation error with context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context to include in the log
        """
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        if context_str:
            self.logger.error(f"Failed {operation}: {error} (context: {context_str})")
        else:
            self.logger.error(f"Failed {operation}: {error}")
