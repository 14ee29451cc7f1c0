"""Disc title data models."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..utils.logging import get_logger
from ..utils.time_format import format_duration_human_readable

logger = get_logger(__name__)


@dataclass(frozen=True)
class Title:
    """A selectable video program on the disc."""

    number: int
    duration_seconds: int = 0  # 0 when unknown

    def __post_init__(self) -> None:
        """Validate title after initialization."""
        if self.number <= 0:
            logger.error(f"Title validation failed: non-positive number {self.number}")
            raise ValueError("number must be positive")
        if self.duration_seconds < 0:
            logger.error(
                f"Title validation failed: negative duration "
                f"{self.duration_seconds} for title {self.number}"
            )
            raise ValueError("duration_seconds must be non-negative")

    @property
    def has_known_duration(self) -> bool:
        return self.duration_seconds > 0

    @property
    def duration_human_readable(self) -> str:
        """Get duration in human-readable format, or 'unknown'."""
        if not self.has_known_duration:
            return "unknown"
        return format_duration_human_readable(self.duration_seconds)

    def __str__(self) -> str:
        return f"Title {self.number} ({self.duration_human_readable})"


@dataclass
class DiscInfo:
    """Result of probing a disc: its label and its titles."""

    device: str
    label: Optional[str] = None
    titles: List[Title] = field(default_factory=list)

    @property
    def title_count(self) -> int:
        return len(self.titles)

    @property
    def longest_title(self) -> Optional[Title]:
        """Get the title with the longest duration (lowest number on ties)."""
        if not self.titles:
            return None
        return max(self.titles, key=lambda t: (t.duration_seconds, -t.number))

    def get_title(self, number: int) -> Optional[Title]:
        """Find the first title with the given number."""
        for title in self.titles:
            if title.number == number:
                return title
        return None
