#!/usr/bin/env python3
"""DVD Ripper CLI - Main entry point for the DVD Ripper application.

Lists the titles on a disc, or rips one title to a Matroska file using
mpv/mplayer for capture and mkvmerge/ffmpeg for remuxing.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.settings import ConfigurationError, Settings, load_settings
from .exceptions import DVDRipperError, OperationCancelledError
from .models.title import Title
from .services.ripper import DVDRipper
from .utils.cancellation import CancellationToken
from .utils.filename import normalize_filename
from .utils.logging import get_logger, operation_context, setup_logging
from .utils.progress import ConsoleProgressCallback, ProgressSample
from .utils.time_format import format_clock

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dvdripper",
        description="Scan a DVD for titles or rip a title to an MKV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --scan
  %(prog)s --scan --device /dev/sr1
  %(prog)s --title 1 --output ~/Videos/movie.mkv
        """,
    )

    operation_group = parser.add_mutually_exclusive_group(required=True)
    operation_group.add_argument(
        "--scan",
        action="store_true",
        help="List the titles on the disc",
    )
    operation_group.add_argument(
        "--title",
        type=int,
        metavar="N",
        help="Rip title N",
    )

    parser.add_argument(
        "--device",
        help="Disc device (default: /dev/sr0)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Output MKV file (default: <output-dir>/<disc label>_title<N>.mkv)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for ripped files (default: ~/Videos)",
    )
    parser.add_argument(
        "--temp-dir",
        type=Path,
        help="Directory for the temporary raw capture (default: system temp)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        help="Directory for session log files (default: ./logs)",
    )
    parser.add_argument(
        "--log-level",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (DEBUG level)",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all console output except errors",
    )

    return parser


def validate_arguments(args: argparse.Namespace) -> None:
    """Validate command line arguments."""
    if args.quiet and args.verbose:
        raise ValueError("Cannot use both --quiet and --verbose flags")

    if args.title is not None and args.title <= 0:
        raise ValueError("Title number must be positive")

    if args.scan and args.output:
        raise ValueError("--output can only be used with --title")


def merge_settings_with_args(args: argparse.Namespace, settings: Settings) -> Settings:
    """Merge command line arguments with settings."""
    updates = {}

    if args.device:
        updates["device"] = args.device
    if args.output_dir:
        updates["output_dir"] = args.output_dir
    if args.temp_dir:
        updates["temp_dir"] = args.temp_dir
    if args.log_dir:
        updates["log_dir"] = args.log_dir
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.verbose:
        updates["verbose"] = True
    if args.quiet:
        updates["quiet"] = True

    current_dict = settings.model_dump()
    current_dict.update(updates)

    return Settings(**current_dict)


def setup_application_logging(settings: Settings) -> Path:
    """Set up application logging based on settings."""
    return setup_logging(
        log_dir=settings.log_dir,
        log_level=settings.get_effective_log_level(),
        max_file_size=settings.log_file_max_size,
        backup_count=settings.log_file_backup_count,
        console_output=not settings.quiet,
    )


def format_title_table(titles: List[Title]) -> str:
    """Format scanned titles for the console."""
    if not titles:
        return "No titles found."

    lines = [f"{'Title':>5}  {'Length':>8}"]
    for title in titles:
        length = format_clock(title.duration_seconds) if title.duration_seconds else "?"
        lines.append(f"{title.number:>5}  {length:>8}")
    return "\n".join(lines)


def default_output_path(
    settings: Settings, label: Optional[str], title_number: int
) -> Path:
    """Build the default output file path from the disc label."""
    stem = Path(normalize_filename(label or "", extension="")).name or "dvd"
    return settings.output_dir / f"{stem}_title{title_number:02d}.mkv"


async def run_scan(
    ripper: DVDRipper,
    settings: Settings,
    quiet: bool,
    cancel_token: Optional[CancellationToken] = None,
) -> int:
    """Scan the disc and print its titles."""
    disc = await ripper.scan_disc(settings.device, cancel_token=cancel_token)
    if not quiet:
        if disc.label:
            print(f"Disc: {disc.label}")
        print(format_title_table(disc.titles))
    return EXIT_OK


async def run_rip(
    ripper: DVDRipper,
    settings: Settings,
    title_number: int,
    output_path: Optional[Path],
    cancel_token: CancellationToken,
) -> int:
    """Rip one title, showing a console progress bar."""
    logger = get_logger(__name__)

    if output_path is None:
        disc = await ripper.scan_disc(settings.device, cancel_token=cancel_token)
        output_path = default_output_path(settings, disc.label, title_number)
        if disc.titles and disc.get_title(title_number) is None:
            logger.warning(f"Title {title_number} was not reported by the scan")

    progress = (
        None
        if settings.quiet
        else ConsoleProgressCallback(label=f"title {title_number}")
    )

    try:
        result = await ripper.rip(
            settings.device,
            title_number,
            output_path,
            progress=progress,
            cancel_token=cancel_token,
        )
    except DVDRipperError as e:
        if progress:
            progress.error(str(e))
        raise

    if progress:
        progress.update(ProgressSample(100.0))
        progress.complete(f"Ripped title {title_number} to {result}")
    logger.info(f"Rip completed: {result}")
    return EXIT_OK


async def run_operation(args: argparse.Namespace, settings: Settings) -> int:
    """Run the requested operation with Ctrl-C wired to cancellation."""
    ripper = DVDRipper(settings)
    cancel_token = CancellationToken()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_token.cancel)
    except (NotImplementedError, RuntimeError):
        # Platforms without signal handler support fall back to KeyboardInterrupt
        pass

    try:
        if args.scan:
            return await run_scan(ripper, settings, settings.quiet, cancel_token)
        return await run_rip(
            ripper, settings, args.title, args.output, cancel_token
        )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main() -> int:
    """Main entry point for the DVD Ripper CLI."""
    try:
        parser = create_argument_parser()
        args = parser.parse_args()

        validate_arguments(args)

        settings = load_settings(args.config)
        settings = merge_settings_with_args(args, settings)

        log_file = setup_application_logging(settings)
        logger = get_logger(__name__)
        logger.debug(f"Session log: {log_file}")

        operation = "scan" if args.scan else "rip"
        with operation_context(operation, device=settings.device):
            return asyncio.run(run_operation(args, settings))

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return EXIT_INTERRUPTED
    except OperationCancelledError:
        print("\nOperation cancelled")
        return EXIT_INTERRUPTED
    except (ValueError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except DVDRipperError as e:
        get_logger(__name__).error(f"Rip failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        logger = get_logger(__name__)
        logger.exception(f"Unexpected error: {e}")
        print(f"Unexpected error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
