"""Progress reporting utilities for capture progress samples."""

import math
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ProgressSample:
    """A capture progress percentage in the range 0-100."""

    percentage: float

    def __post_init__(self) -> None:
        """Clamp percentage into [0, 100]."""
        value = self.percentage
        if not math.isfinite(value) or value < 0:
            value = 0.0
        elif value > 100:
            value = 100.0
        object.__setattr__(self, "percentage", float(value))

    @property
    def is_complete(self) -> bool:
        """Check if the sample reports a finished capture."""
        return self.percentage >= 100.0

    def __str__(self) -> str:
        return f"{self.percentage:.1f}%"


class ProgressCallback(ABC):
    """Abstract base class for progress callbacks."""

    @abstractmethod
    def update(self, sample: ProgressSample) -> None:
        """Update progress.

        Args:
            sample: Latest progress sample
        """
        pass

    @abstractmethod
    def complete(self, message: str = "") -> None:
        """Signal completion.

        Args:
            message: Optional completion message
        """
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        """Signal error.

        Args:
            message: Error message
        """
        pass


class ConsoleProgressCallback(ProgressCallback):
    """Console-based progress reporter with animated progress bar."""

    def __init__(self, width: int = 50, label: str = "") -> None:
        """Initialize console progress callback.

        Args:
            width: Width of progress bar in characters
            label: Text shown after the percentage
        """
        self.width = width
        self.label = label
        self._last_line_length = 0
        self._lock = threading.Lock()

    def update(self, sample: ProgressSample) -> None:
        """Update progress display."""
        with self._lock:
            filled_width = int((sample.percentage / 100.0) * self.width)
            bar = "█" * filled_width + "░" * (self.width - filled_width)

            parts = [f"[{bar}]", f"{sample.percentage:5.1f}%"]
            if self.label:
                parts.append(f"- {self.label}")

            line = " ".join(parts)

            sys.stdout.write("\r" + " " * self._last_line_length + "\r")
            sys.stdout.write(line)
            sys.stdout.flush()

            self._last_line_length = len(line)

    def complete(self, message: str = "") -> None:
        """Signal completion."""
        with self._lock:
            sys.stdout.write("\r" + " " * self._last_line_length + "\r")

            if message:
                print(f"✓ {message}")
            else:
                print("✓ Complete")

            self._last_line_length = 0

    def error(self, message: str) -> None:
        """Signal error."""
        with self._lock:
            sys.stdout.write("\r" + " " * self._last_line_length + "\r")
            print(f"✗ Error: {message}")
            self._last_line_length = 0


class SilentProgressCallback(ProgressCallback):
    """Progress callback that does nothing (for testing or silent operation)."""

    def update(self, sample: ProgressSample) -> None:
        """Do nothing."""
        pass

    def complete(self, message: str = "") -> None:
        """Do nothing."""
        pass

    def error(self, message: str) -> None:
        """Do nothing."""
        pass


class CallbackProgressCallback(ProgressCallback):
    """Progress callback that calls provided functions.

    Useful for GUI callers that bind a plain ``float`` setter, and for tests.
    """

    def __init__(
        self,
        update_fn: Optional[Callable[[float], None]] = None,
        complete_fn: Optional[Callable[[str], None]] = None,
        error_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Initialize callback progress reporter.

        Args:
            update_fn: Function called with each percentage
            complete_fn: Function to call on completion
            error_fn: Function to call on error
        """
        self.update_fn = update_fn
        self.complete_fn = complete_fn
        self.error_fn = error_fn

    def update(self, sample: ProgressSample) -> None:
        """Call update function if provided."""
        if self.update_fn:
            self.update_fn(sample.percentage)

    def complete(self, message: str = "") -> None:
        """Call complete function if provided."""
        if self.complete_fn:
            self.complete_fn(message)

    def error(self, message: str) -> None:
        """Call error function if provided."""
        if self.error_fn:
            self.error_fn(message)
