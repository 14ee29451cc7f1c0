"""Title capture service.

mpv records the raw title stream while its status line is parsed for a
percentage. A poll loop watches the growing output file and the
cancellation token. If neither a progress line nor file growth is seen
for ``STALL_TIMEOUT_SECONDS`` while mpv is still running, mpv is killed.
When mpv leaves no data behind, mplayer dumps the whole title instead.
"""

import asyncio
import re
import shlex
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config.settings import Settings
from ..exceptions import DVDRipperError, OperationCancelledError
from ..utils.cancellation import CancellationToken
from ..utils.progress import ProgressCallback, ProgressSample, SilentProgressCallback
from ..utils.reporting import LineReporter, LogSink
from .base import BaseService
from .process_runner import ProcessError, ProcessRunner, RunningProcess, Tool

POLL_INTERVAL_SECONDS = 0.5
STALL_TIMEOUT_SECONDS = 10.0
EXIT_GRACE_SECONDS = 0.5

PROGRESS_STATUS_MSG = "[progress] ${percent-pos}% (${time-pos}/${duration})"
PROGRESS_PATTERN = re.compile(r"\[progress\]\s+(\d+(?:\.\d+)?)%")


class CaptureError(DVDRipperError):
    """Exception raised when no capture tool could produce the raw stream."""

    pass


class CaptureState(Enum):
    """Lifecycle of a single capture."""

    STARTING = "starting"
    STREAMING = "streaming"
    STALLED = "stalled"
    FALLBACK_STREAMING = "fallback_streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class StallMonitor:
    """Activity timestamps for one capture.

    Progress lines and file growth update their own timestamp; the poll
    loop reads both. All updates happen on the event loop thread.
    """

    last_progress_at: float
    last_file_growth_at: float
    last_size: int = 0

    @classmethod
    def start(cls, now: float) -> "StallMonitor":
        return cls(last_progress_at=now, last_file_growth_at=now)

    def mark_progress(self, now: float) -> None:
        self.last_progress_at = now

    def observe_size(self, size: int, now: float) -> bool:
        """Record the output size; returns True if the file grew."""
        if size > self.last_size:
            self.last_size = size
            self.last_file_growth_at = now
            return True
        return False

    @property
    def last_activity_at(self) -> float:
        return max(self.last_progress_at, self.last_file_growth_at)

    def idle_for(self, now: float) -> float:
        return now - self.last_activity_at

    def is_stalled(self, now: float, threshold: float) -> bool:
        return self.idle_for(now) >= threshold


def parse_progress(line: str) -> Optional[float]:
    """Extract the percentage from an mpv ``[progress]`` status line."""
    match = PROGRESS_PATTERN.search(line)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def file_size(path: Path) -> int:
    """Size of a file in bytes, 0 if it does not exist."""
    try:
        return path.stat().st_size
    except OSError:
        return 0


class CaptureController(BaseService):
    """Captures one title's raw stream into a file."""

    poll_interval: float = POLL_INTERVAL_SECONDS
    stall_timeout: float = STALL_TIMEOUT_SECONDS
    exit_grace: float = EXIT_GRACE_SECONDS
    clock: Callable[[], float] = staticmethod(time.monotonic)

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None):
        super().__init__(settings)
        self.runner = runner or ProcessRunner(settings)
        # One entry per capture; rips use unique raw paths
        self.states: Dict[Path, CaptureState] = {}
        self._latest: Optional[Path] = None

    @property
    def state(self) -> CaptureState:
        """State of the most recently started capture."""
        if self._latest is None:
            return CaptureState.STARTING
        return self.states[self._latest]

    def state_of(self, raw_path: Path) -> Optional[CaptureState]:
        """State of the capture writing to ``raw_path``, if any."""
        return self.states.get(Path(raw_path))

    def _set_state(self, raw_path: Path, state: CaptureState) -> None:
        self.states[Path(raw_path)] = state

    def build_primary_args(
        self, device: str, title_number: int, raw_path: Path
    ) -> List[str]:
        """Build the mpv argument vector for a headless stream recording."""
        return [
            "--no-config",
            "--msg-level=all=error,statusline=status",
            "--ao=null",
            "--vo=null",
            "--term-osd=force",
            f"--term-status-msg={PROGRESS_STATUS_MSG}",
            "--idle=no",
            "--loop-file=no",
            f"--dvd-device={device}",
            f"dvd://{title_number}",
            f"--stream-record={raw_path}",
        ]

    def build_secondary_args(
        self, device: str, title_number: int, raw_path: Path
    ) -> List[str]:
        """Build the mplayer argument vector for a full title dump."""
        return [
            "-really-quiet",
            "-ao",
            "null",
            "-vo",
            "null",
            "-nocache",
            "-dvd-device",
            device,
            f"dvd://{title_number}",
            "-dumpstream",
            "-dumpfile",
            str(raw_path),
        ]

    async def capture(
        self,
        device: str,
        title_number: int,
        raw_path: Path,
        progress: Optional[ProgressCallback] = None,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
        reporter: Optional[LineReporter] = None,
    ) -> None:
        """Capture a title to ``raw_path``.

        Progress may never reach 100; callers decide the final value.

        Raises:
            CaptureError: If the fallback tool fails or nothing was captured
            OperationCancelledError: If cancellation was requested
        """
        report = self._reporter(log_sink, reporter)
        token = cancel_token or CancellationToken()
        progress = progress or SilentProgressCallback()
        self._latest = Path(raw_path)
        self._set_state(raw_path, CaptureState.STARTING)

        try:
            token.raise_if_cancelled()
            report.info(f"Ripping title {title_number} from {device}…")

            await self._capture_primary(
                device, title_number, raw_path, progress, report, token
            )

            if file_size(raw_path) == 0:
                report.info("mpv produced no output; switching to mplayer…")
                self._set_state(raw_path, CaptureState.FALLBACK_STREAMING)
                await self._capture_secondary(
                    device, title_number, raw_path, report, token
                )

            self._set_state(raw_path, CaptureState.COMPLETED)
            report.debug(f"Captured {file_size(raw_path)} bytes to {raw_path}")
        except (OperationCancelledError, asyncio.CancelledError):
            self._set_state(raw_path, CaptureState.CANCELLED)
            report.error(f"Capture of title {title_number} cancelled")
            raise
        except CaptureError:
            self._set_state(raw_path, CaptureState.FAILED)
            raise
        except Exception as e:
            self._set_state(raw_path, CaptureState.FAILED)
            report.error(f"Capture of title {title_number} failed: {e}")
            raise CaptureError(
                f"Capture of title {title_number} failed: {e}",
                {"device": device, "title": title_number},
            ) from e

    async def _capture_primary(
        self,
        device: str,
        title_number: int,
        raw_path: Path,
        progress: ProgressCallback,
        report: LineReporter,
        token: CancellationToken,
    ) -> None:
        args = self.build_primary_args(device, title_number, raw_path)
        report.debug(f"Starting mpv with args: {shlex.join(args)}")

        monitor = StallMonitor.start(self.clock())

        def on_line(stream: str, text: str) -> None:
            percentage = parse_progress(text)
            if percentage is not None:
                monitor.mark_progress(self.clock())
                progress.update(ProgressSample(percentage))
            report.debug(f"mpv: {text}")

        try:
            handle = await self.runner.start(
                Tool.MPV, args, on_line=on_line, capture_stdout=False
            )
        except ProcessError as e:
            report.error(f"mpv error: {e}")
            return

        self._set_state(raw_path, CaptureState.STREAMING)
        registration = token.register(handle.kill_threadsafe)
        try:
            await self._watch(handle, raw_path, monitor, report, token)
            report.debug(f"mpv exit code: {handle.returncode}")
        finally:
            registration.dispose()
            handle.kill()

    async def _watch(
        self,
        handle: RunningProcess,
        raw_path: Path,
        monitor: StallMonitor,
        report: LineReporter,
        token: CancellationToken,
    ) -> None:
        """Poll until mpv exits, stalls or the job is cancelled."""
        while handle.is_running:
            if token.is_cancelled:
                handle.kill()
                break

            await handle.wait(timeout=self.poll_interval)

            now = self.clock()
            monitor.observe_size(file_size(raw_path), now)

            if handle.is_running and monitor.is_stalled(now, self.stall_timeout):
                self._set_state(raw_path, CaptureState.STALLED)
                report.info(
                    f"mpv appears stalled (no progress for "
                    f"{monitor.idle_for(now):.1f}s); stopping it…"
                )
                handle.kill()
                break

        if handle.is_running:
            await asyncio.sleep(self.exit_grace)
            await handle.wait()

        if token.is_cancelled:
            raise OperationCancelledError(
                "Capture cancelled", {"tool": Tool.MPV.value, "pid": handle.pid}
            )

    async def _capture_secondary(
        self,
        device: str,
        title_number: int,
        raw_path: Path,
        report: LineReporter,
        token: CancellationToken,
    ) -> None:
        args = self.build_secondary_args(device, title_number, raw_path)
        report.info(f"Running mplayer fallback for title {title_number}…")
        report.debug(
            f"Running mplayer dump: {shlex.join([Tool.MPLAYER.value] + args)}"
        )

        try:
            await self.runner.run(
                Tool.MPLAYER,
                args,
                streaming=True,
                on_line=lambda stream, text: report.debug(f"mplayer: {text}"),
                cancel_token=token,
            )
        except ProcessError as e:
            report.error(f"mplayer dump failed: {e}")
            raise CaptureError(
                f"Fallback capture of title {title_number} failed: {e}",
                {"tool": Tool.MPLAYER.value, "title": title_number},
            ) from e

        report.debug("mplayer finished dumping.")

        if file_size(raw_path) == 0:
            report.error(f"mplayer produced no data for title {title_number}")
            raise CaptureError(
                f"No data captured for title {title_number}",
                {"title": title_number, "raw_path": str(raw_path)},
            )
