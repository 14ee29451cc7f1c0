"""Rip orchestration: the two operations offered to front ends.

``scan_titles`` lists the titles on a disc. ``rip`` captures one title to a
temporary raw file, remuxes it to the requested path, and always deletes
the raw file afterwards. Only one rip runs at a time per ``DVDRipper``;
starting another cancels the one in flight.
"""

import threading
from pathlib import Path
from typing import List, Optional, Union

from ..config.settings import Settings
from ..models.rip_job import RipJob
from ..models.title import DiscInfo, Title
from ..utils.cancellation import CancellationToken
from ..utils.logging import operation_context
from ..utils.progress import ProgressCallback
from ..utils.reporting import LineReporter, LogSink
from .base import BaseService
from .capture import CaptureController
from .process_runner import ProcessRunner
from .remux import RemuxController
from .scanner import TitleScanner


class DVDRipper(BaseService):
    """Scans discs and rips titles using the external tool chain."""

    def __init__(
        self,
        settings: Settings,
        runner: Optional[ProcessRunner] = None,
        scanner: Optional[TitleScanner] = None,
        capture: Optional[CaptureController] = None,
        remux: Optional[RemuxController] = None,
    ):
        """Initialize the ripper.

        Args:
            settings: Application settings
            runner: Shared process runner
            scanner: Title scanner (created from settings if None)
            capture: Capture controller (created from settings if None)
            remux: Remux controller (created from settings if None)
        """
        super().__init__(settings)
        self.runner = runner or ProcessRunner(settings)
        self.scanner = scanner or TitleScanner(settings, self.runner)
        self.capture = capture or CaptureController(settings, self.runner)
        self.remux = remux or RemuxController(settings, self.runner)

        self._active_token: Optional[CancellationToken] = None
        self._lock = threading.Lock()

    @property
    def is_busy(self) -> bool:
        """Check if a rip is in flight."""
        with self._lock:
            return self._active_token is not None

    async def scan_titles(
        self,
        device: str,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Title]:
        """List the titles on a disc, sorted by number."""
        with operation_context("scan", component=self.__class__.__name__):
            return await self.scanner.scan(device, log_sink, cancel_token)

    async def scan_disc(
        self,
        device: str,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DiscInfo:
        """Probe a disc for its label and titles."""
        with operation_context("scan", component=self.__class__.__name__):
            return await self.scanner.scan_disc(device, log_sink, cancel_token)

    def cancel_current(self) -> bool:
        """Cancel the rip in flight.

        Returns:
            True if a rip was running
        """
        with self._lock:
            token = self._active_token

        if token is None:
            return False
        self.logger.info("Cancelling current rip")
        token.cancel()
        return True

    async def rip(
        self,
        device: str,
        title_number: int,
        output_path: Union[str, Path],
        progress: Optional[ProgressCallback] = None,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """Rip one title to ``output_path``.

        Args:
            device: Disc device path
            title_number: Title to rip (1-based)
            output_path: Final Matroska file path
            progress: Receives capture percentages
            log_sink: Receives "[LEVEL] message" lines
            cancel_token: Caller's cancellation token

        Returns:
            The output path

        Raises:
            ValueError: If an argument is invalid
            CaptureError: If no capture tool produced data
            RemuxError: If every mux tool failed
            OperationCancelledError: If the rip was cancelled or superseded
        """
        if not device or not device.strip():
            raise ValueError("Device must be provided.")
        if title_number <= 0:
            raise ValueError(f"Title number must be positive, got {title_number}")
        if not str(output_path).strip():
            raise ValueError("Output path must be provided.")

        job = RipJob.create(device, title_number, output_path, self.settings.temp_dir)
        report = self._reporter(log_sink)

        job_token = CancellationToken()
        with self._lock:
            previous, self._active_token = self._active_token, job_token
        if previous is not None:
            report.info("Cancelling previous rip…")
            previous.cancel()

        registration = cancel_token.register(job_token.cancel) if cancel_token else None

        self._log_operation_start("rip", title=title_number, device=device)
        try:
            with operation_context(
                "rip", component=self.__class__.__name__, title=title_number
            ):
                job.temp_raw_path.parent.mkdir(parents=True, exist_ok=True)
                await self.capture.capture(
                    job.device,
                    job.title_number,
                    job.temp_raw_path,
                    progress=progress,
                    cancel_token=job_token,
                    reporter=report,
                )
                await self.remux.remux(
                    job.temp_raw_path,
                    job.output_path,
                    cancel_token=job_token,
                    reporter=report,
                )
            self._log_operation_complete("rip", output=job.output_path)
            return job.output_path
        except Exception as e:
            self._log_operation_error("rip", e, title=title_number)
            raise
        finally:
            if registration is not None:
                registration.dispose()
            self._remove_temp_file(job, report)
            with self._lock:
                if self._active_token is job_token:
                    self._active_token = None

    def _remove_temp_file(self, job: RipJob, report: LineReporter) -> None:
        try:
            job.temp_raw_path.unlink(missing_ok=True)
            report.debug(f"Removed temporary file {job.temp_raw_path}")
        except OSError as e:
            report.error(f"Failed to remove temporary file {job.temp_raw_path}: {e}")
