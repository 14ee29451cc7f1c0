"""Common base exception class for DVD Ripper.

This module provides the base exception class that all DVD Ripper exceptions
should inherit from for consistent error handling and context support.
"""

from typing import Any, Dict, Optional


class DVDRipperError(Exception):
    """Base exception for all DVD Ripper errors.

    Attributes:
        context: Optional dictionary containing additional error context
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize the DVD Ripper error.

        Args:
            message: The error message
            context: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        base_message = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_message} (context: {context_str})"
        return base_message


class OperationCancelledError(DVDRipperError):
    """Raised when the caller cancels a running scan, capture or remux."""

    pass
