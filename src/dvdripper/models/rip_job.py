"""Rip job data model."""

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RipJob:
    """One rip request: which title to read and where the files go.

    ``temp_raw_path`` is unique per job and owned by the capture and remux
    pipeline for that job only.
    """

    device: str
    title_number: int
    output_path: Path
    temp_raw_path: Path

    def __post_init__(self) -> None:
        """Validate rip job after initialization."""
        if not self.device or not self.device.strip():
            raise ValueError("Device must be provided")
        if self.title_number <= 0:
            raise ValueError("title_number must be positive")
        if not str(self.output_path).strip():
            raise ValueError("Output path must be provided")

    @classmethod
    def create(
        cls,
        device: str,
        title_number: int,
        output_path: Union[str, Path],
        temp_dir: Path,
    ) -> "RipJob":
        """Create a job with a freshly generated temporary raw file path.

        Args:
            device: Disc device path
            title_number: Title to rip (1-based)
            output_path: Final container path
            temp_dir: Directory for the raw capture

        Returns:
            New RipJob
        """
        if isinstance(output_path, str):
            if not output_path.strip():
                raise ValueError("Output path must be provided")
            output_path = Path(output_path)

        temp_raw_path = temp_dir / f"dvd_title{title_number}_{uuid.uuid4().hex}.vob"
        job = cls(
            device=device,
            title_number=title_number,
            output_path=output_path.expanduser(),
            temp_raw_path=temp_raw_path,
        )
        logger.debug(
            f"Created rip job for title {title_number} on {device}: "
            f"raw={temp_raw_path}, output={job.output_path}"
        )
        return job

    @property
    def raw_size(self) -> int:
        """Current size of the raw capture in bytes (0 if missing)."""
        try:
            return self.temp_raw_path.stat().st_size
        except OSError:
            return 0
