"""Title discovery service.

Titles are read from ``lsdvd -Ox`` first. When that yields nothing (tool
missing, error exit, malformed XML, or no tracks) every title index from 1
to 50 is probed individually with ``mplayer -identify``, which is slower but
works on discs and drives where lsdvd fails.
"""

import math
import shlex
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

from ..config.settings import Settings
from ..exceptions import DVDRipperError
from ..models.title import DiscInfo, Title
from ..utils.cancellation import CancellationToken
from ..utils.reporting import LineReporter, LogSink
from .base import BaseService
from .process_runner import STDERR, LineCallback, ProcessError, ProcessRunner, Tool

MAX_FALLBACK_TITLES = 50
ID_LENGTH_PREFIX = "ID_LENGTH="


class TitleParseError(DVDRipperError):
    """Exception raised when probe output cannot be parsed."""

    pass


def _round_seconds(value: str) -> Optional[int]:
    """Parse floating point seconds and round to the nearest second."""
    try:
        seconds = float(value.strip())
    except (AttributeError, ValueError):
        return None
    if not math.isfinite(seconds):
        return None
    return max(0, round(seconds))


def parse_lsdvd_xml(xml_text: str) -> Tuple[Optional[str], List[Title]]:
    """Parse ``lsdvd -Ox`` output.

    Args:
        xml_text: Raw stdout of lsdvd

    Returns:
        Tuple of (disc label, titles in document order)

    Raises:
        TitleParseError: If the output is empty or not well-formed XML
    """
    start = xml_text.find("<")
    if start < 0:
        raise TitleParseError("lsdvd produced no XML output")

    try:
        root = ET.fromstring(xml_text[start:])
    except ET.ParseError as e:
        raise TitleParseError(f"Malformed lsdvd XML: {e}") from e

    label = root.findtext("title")
    if label is not None:
        label = label.strip() or None

    titles: List[Title] = []
    for track in root.iter("track"):
        ix_text = track.findtext("ix")
        try:
            number = int(ix_text.strip()) if ix_text else 0
        except ValueError:
            continue
        if number <= 0:
            continue

        length_text = track.findtext("length")
        duration = _round_seconds(length_text) if length_text else None
        titles.append(Title(number=number, duration_seconds=duration or 0))

    return label, titles


def parse_mplayer_length(output: str) -> Optional[int]:
    """Find the ``ID_LENGTH=`` marker in ``mplayer -identify`` output.

    Only the first marker is considered.

    Returns:
        Rounded duration in seconds, or None if absent or unparseable
    """
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(ID_LENGTH_PREFIX):
            return _round_seconds(line[len(ID_LENGTH_PREFIX) :])
    return None


class TitleScanner(BaseService):
    """Discovers the titles on a disc."""

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None):
        super().__init__(settings)
        self.runner = runner or ProcessRunner(settings)

    async def scan(
        self,
        device: str,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
        reporter: Optional[LineReporter] = None,
    ) -> List[Title]:
        """Scan a disc and return its titles sorted by number.

        An empty list is a valid result, not an error.
        """
        disc = await self.scan_disc(device, log_sink, cancel_token, reporter)
        return disc.titles

    async def scan_disc(
        self,
        device: str,
        log_sink: Optional[LogSink] = None,
        cancel_token: Optional[CancellationToken] = None,
        reporter: Optional[LineReporter] = None,
    ) -> DiscInfo:
        """Scan a disc for its label and titles.

        Args:
            device: Disc device path
            log_sink: Receives "[LEVEL] message" lines
            cancel_token: Aborts the scan and kills the running probe
            reporter: Existing job reporter (takes precedence over log_sink)

        Returns:
            DiscInfo with titles sorted ascending by number

        Raises:
            ValueError: If device is blank
            OperationCancelledError: If the scan was cancelled
        """
        if not device or not device.strip():
            raise ValueError("Device must be provided")

        report = self._reporter(log_sink, reporter)
        report.info(f"Scanning titles on {device}…")

        label, titles = await self._probe_structured(device, report, cancel_token)

        if not titles:
            report.info("lsdvd failed or returned no titles; probing with mplayer…")
            titles = await self._probe_each_title(device, report, cancel_token)

        # Stable sort; duplicate numbers from bad probe output are kept in order
        titles = sorted(titles, key=lambda t: t.number)
        report.info(f"Found {len(titles)} title(s).")
        return DiscInfo(device=device, label=label, titles=titles)

    def _forward_stderr(self, report: LineReporter, tool: Tool) -> LineCallback:
        def on_line(stream: str, text: str) -> None:
            if stream == STDERR:
                report.debug(f"{tool.value}: {text}")

        return on_line

    async def _probe_structured(
        self,
        device: str,
        report: LineReporter,
        cancel_token: Optional[CancellationToken],
    ) -> Tuple[Optional[str], List[Title]]:
        args = ["-Ox", device]
        report.debug(f"Running: {shlex.join([Tool.LSDVD.value] + args)}")

        try:
            xml_text = await self.runner.run(
                Tool.LSDVD,
                args,
                on_line=self._forward_stderr(report, Tool.LSDVD),
                cancel_token=cancel_token,
            )
            report.debug("lsdvd returned XML; parsing…")
            return parse_lsdvd_xml(xml_text)
        except (ProcessError, TitleParseError) as e:
            report.error(f"lsdvd error: {e}")
            return None, []

    async def _probe_each_title(
        self,
        device: str,
        report: LineReporter,
        cancel_token: Optional[CancellationToken],
    ) -> List[Title]:
        titles: List[Title] = []

        for number in range(1, MAX_FALLBACK_TITLES + 1):
            args = [
                "-really-quiet",
                "-identify",
                "-frames",
                "0",
                "-vo",
                "null",
                "-ao",
                "null",
                "-dvd-device",
                device,
                f"dvd://{number}",
            ]
            report.debug(
                f"Running mplayer probe: {shlex.join([Tool.MPLAYER.value] + args)}"
            )

            try:
                output = await self.runner.run(
                    Tool.MPLAYER,
                    args,
                    on_line=self._forward_stderr(report, Tool.MPLAYER),
                    cancel_token=cancel_token,
                )
            except ProcessError as e:
                report.error(f"mplayer error on title {number}: {e}")
                continue

            duration = parse_mplayer_length(output)
            if duration is not None and duration > 0:
                titles.append(Title(number=number, duration_seconds=duration))
                report.debug(f"Title {number}: {duration}s")

        return titles
