"""Container remux service.

mkvmerge is tried first. Raw captures from disc often carry broken
timestamps that mkvmerge rejects; ffmpeg then stream-copies the first video
stream, all audio and any subtitles while regenerating timestamps.
"""

import shlex
from pathlib import Path
from typing import List, Optional

from ..config.settings import Settings
from ..exceptions import DVDRipperError, OperationCancelledError
from ..utils.cancellation import CancellationToken
from ..utils.reporting import LineReporter, LogSink
from .base import BaseService
from .process_runner import ProcessError, ProcessRunner, Tool


class RemuxError(DVDRipperError):
    """Exception raised when every mux tool failed."""

    pass


class RemuxController(BaseService):
    """Packages a raw capture into a Matroska file."""

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None):
        super().__init__(settings)
        self.runner = runner or ProcessRunner(settings)

    def build_primary_args(self, raw_path: Path, output_path: Path) -> List[str]:
        return ["-q", "-o", str(output_path), str(raw_path)]

    def build_secondary_args(self, raw_path: Path, output_path: Path) -> List[str]:
        return [
            "-hide_banner",
            "-loglevel",
            "warning",
            "-y",
            "-fflags",
            "+genpts+igndts",
            "-avoid_negative_ts",
            "make_zero",
            "-muxpreload",
            "0",
            "-muxdelay",
            "0",
            "-i",
            str(raw_path),
            "-map",
            "0:v:0",
            "-map",
            "0:a",
            "-map",
            "0:s?",
            "-c",
            "copy",
            str(output_path),
        ]

    async def remux(
        self,
        raw_path: Path,
        output_path: Path,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
        reporter: Optional[LineReporter] = None,
    ) -> None:
        """Remux ``raw_path`` into ``output_path``.

        If both tools fail, whatever partial output ffmpeg left behind is
        not removed.

        Raises:
            RemuxError: If the fallback tool fails
            OperationCancelledError: If cancellation was requested
        """
        report = self._reporter(log_sink, reporter)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        report.info(f"Remuxing to {output_path}…")

        def on_line(stream: str, text: str) -> None:
            report.debug(text)

        primary_args = self.build_primary_args(raw_path, output_path)
        report.debug(
            f"Running mkvmerge: {shlex.join([Tool.MKVMERGE.value] + primary_args)}"
        )
        try:
            await self.runner.run(
                Tool.MKVMERGE,
                primary_args,
                streaming=True,
                on_line=on_line,
                cancel_token=cancel_token,
            )
            report.info("mkvmerge completed successfully.")
            return
        except OperationCancelledError:
            report.error("Remux cancelled")
            raise
        except ProcessError as e:
            report.error(f"mkvmerge error: {e}")
            report.info("mkvmerge failed; falling back to ffmpeg…")

        secondary_args = self.build_secondary_args(raw_path, output_path)
        report.debug(
            f"Running ffmpeg: {shlex.join([Tool.FFMPEG.value] + secondary_args)}"
        )
        try:
            await self.runner.run(
                Tool.FFMPEG,
                secondary_args,
                streaming=True,
                on_line=on_line,
                cancel_token=cancel_token,
            )
        except OperationCancelledError:
            report.error("Remux cancelled")
            raise
        except ProcessError as e:
            report.error(f"ffmpeg remux failed: {e}")
            raise RemuxError(
                f"Remux to {output_path} failed: {e}",
                {"raw_path": str(raw_path), "output_path": str(output_path)},
            ) from e

        report.info("ffmpeg remux completed successfully.")
