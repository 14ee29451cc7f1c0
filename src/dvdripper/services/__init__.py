"""Business logic services for DVD Ripper."""

from .base import BaseService
from .capture import (
    CaptureController,
    CaptureError,
    CaptureState,
    StallMonitor,
)
from .process_runner import (
    ProcessError,
    ProcessRunner,
    RunningProcess,
    Tool,
    ToolExitError,
    ToolLaunchError,
)
from .remux import RemuxController, RemuxError
from .ripper import DVDRipper
from .scanner import TitleParseError, TitleScanner

__all__ = [
    # Base Service
    "BaseService",
    # Process Runner
    "ProcessRunner",
    "RunningProcess",
    "Tool",
    "ProcessError",
    "ToolLaunchError",
    "ToolExitError",
    # Title Scanner
    "TitleScanner",
    "TitleParseError",
    # Capture Controller
    "CaptureController",
    "CaptureError",
    "CaptureState",
    "StallMonitor",
    # Remux Controller
    "RemuxController",
    "RemuxError",
    # Ripper
    "DVDRipper",
]
