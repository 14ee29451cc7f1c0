"""Subprocess plumbing shared by the scanner, capture and remux services.

External tools are spawned with an argument vector (never through a shell),
so paths containing whitespace or quotes always reach the tool as a single
argument. Commands are echoed to the log shell-quoted.
"""

import asyncio
import re
import shlex
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, List, Optional, Sequence, Union

from ..config.settings import Settings
from ..exceptions import DVDRipperError, OperationCancelledError
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .base import BaseService

logger = get_logger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

# (stream name, line text)
LineCallback = Callable[[str, str], None]

_LINE_BREAK = re.compile(rb"[\r\n]+")
_READ_CHUNK_SIZE = 4096
_MAX_STDERR_LINES = 500


class Tool(Enum):
    """The external programs this package is allowed to run."""

    LSDVD = "lsdvd"
    MPV = "mpv"
    MPLAYER = "mplayer"
    MKVMERGE = "mkvmerge"
    FFMPEG = "ffmpeg"


class ProcessError(DVDRipperError):
    """Base exception for external tool failures."""

    pass


class ToolLaunchError(ProcessError):
    """Exception raised when a tool is missing or cannot be started."""

    pass


class ToolExitError(ProcessError):
    """Exception raised when a tool exits with a non-zero code."""

    def __init__(self, tool: Tool, returncode: int, stderr_lines: Sequence[str]):
        self.tool = tool
        self.returncode = returncode
        self.stderr_lines = list(stderr_lines)
        if self.stderr_lines:
            message = "\n".join(self.stderr_lines)
        else:
            message = f"{tool.value} exited with non-zero code {returncode}"
        super().__init__(message, {"tool": tool.value, "returncode": returncode})


class RunningProcess:
    """A live tool process whose output is being pumped line by line."""

    def __init__(
        self,
        tool: Tool,
        command: List[str],
        process: asyncio.subprocess.Process,
        on_line: Optional[LineCallback] = None,
        capture_stdout: bool = True,
    ) -> None:
        self.tool = tool
        self.command = command
        self.on_line = on_line
        self.capture_stdout = capture_stdout
        self.stdout_lines: List[str] = []
        self.stderr_lines: Deque[str] = deque(maxlen=_MAX_STDERR_LINES)
        self.kill_requested = False

        self._process = process
        self._loop = asyncio.get_running_loop()
        self._pumps = [
            asyncio.ensure_future(self._pump(process.stdout, STDOUT)),
            asyncio.ensure_future(self._pump(process.stderr, STDERR)),
        ]
        self._exit_task = asyncio.ensure_future(self._wait_for_exit())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        """Exit code once the process and its output streams have finished."""
        if not self._exit_task.done():
            return None
        return self._process.returncode

    @property
    def is_running(self) -> bool:
        return not self._exit_task.done()

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    async def _pump(self, stream: Optional[asyncio.StreamReader], name: str) -> None:
        """Read a stream to EOF, splitting on CR or LF."""
        if stream is None:
            return

        buffer = b""
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                break
            buffer += chunk
            *lines, buffer = _LINE_BREAK.split(buffer)
            for raw in lines:
                self._emit(name, raw)

        if buffer:
            self._emit(name, buffer)

    def _emit(self, name: str, raw: bytes) -> None:
        if not raw:
            return

        text = raw.decode("utf-8", errors="replace")
        if name == STDOUT:
            if self.capture_stdout:
                self.stdout_lines.append(text)
        else:
            self.stderr_lines.append(text)

        if self.on_line is not None:
            try:
                self.on_line(name, text)
            except Exception as e:
                logger.warning(f"{self.tool.value} line callback failed: {e}")

    async def _wait_for_exit(self) -> int:
        returncode = await self._process.wait()
        await asyncio.gather(*self._pumps)
        logger.debug(f"{self.tool.value} exited with code {returncode}")
        return returncode

    async def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the process to exit.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            The exit code, or None if the timeout elapsed first
        """
        done, _ = await asyncio.wait({self._exit_task}, timeout=timeout)
        if not done:
            return None
        return self._exit_task.result()

    def kill(self) -> None:
        """Kill the process. Idempotent; kill failures are logged and ignored."""
        if self._process.returncode is not None:
            return

        self.kill_requested = True
        try:
            self._process.kill()
            logger.debug(f"Killed {self.tool.value} (pid {self.pid})")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"Failed to kill {self.tool.value} (pid {self.pid}): {e}")

    def kill_threadsafe(self) -> None:
        """Kill from any thread by scheduling the kill on the owning loop."""
        try:
            self._loop.call_soon_threadsafe(self.kill)
        except RuntimeError:
            # Loop already closed, so the process has been reaped
            pass


class ProcessRunner(BaseService):
    """Spawns allow-listed tools and streams their output.

    Tools are looked up in ``settings.bin_dir`` first, then on ``PATH``.
    The runner never retries; fallbacks are decided by its callers.
    """

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.bin_dir = settings.bin_dir

    def resolve(self, tool: Tool) -> str:
        """Resolve the executable for a tool.

        Raises:
            ToolLaunchError: If the tool cannot be found
        """
        path = self.settings.find_tool(tool.value)
        if path is not None:
            return str(path)

        raise ToolLaunchError(
            f"{tool.value} not found in {self.bin_dir} or on PATH",
            {"tool": tool.value},
        )

    async def start(
        self,
        tool: Tool,
        args: Sequence[Union[str, Path]],
        on_line: Optional[LineCallback] = None,
        capture_stdout: bool = True,
    ) -> RunningProcess:
        """Spawn a tool and begin pumping its output.

        Args:
            tool: Tool to run
            args: Argument vector (each item passed to the tool verbatim)
            on_line: Called with (stream, text) for every output line
            capture_stdout: Whether to keep stdout lines for the result

        Returns:
            Handle to the running process

        Raises:
            ToolLaunchError: If the tool is missing or cannot be started
        """
        executable = self.resolve(tool)
        command = [executable] + [str(arg) for arg in args]
        self.logger.debug(f"Spawning: {shlex.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.logger.error(f"Failed to start {tool.value}: {e}")
            raise ToolLaunchError(
                f"Failed to start {tool.value}: {e}", {"tool": tool.value}
            ) from e

        return RunningProcess(tool, command, process, on_line, capture_stdout)

    async def run(
        self,
        tool: Tool,
        args: Sequence[Union[str, Path]],
        streaming: bool = False,
        on_line: Optional[LineCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Run a tool to completion.

        Args:
            tool: Tool to run
            args: Argument vector
            streaming: If True, output is only forwarded to ``on_line`` and
                stdout is not accumulated (the result is empty)
            on_line: Called with (stream, text) for every output line
            cancel_token: Kills the process when cancelled

        Returns:
            Captured stdout lines joined with newlines

        Raises:
            ToolLaunchError: If the tool cannot be started
            ToolExitError: If the tool exits with a non-zero code
            OperationCancelledError: If cancellation was requested
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        handle = await self.start(tool, args, on_line, capture_stdout=not streaming)
        registration = (
            cancel_token.register(handle.kill_threadsafe) if cancel_token else None
        )

        try:
            returncode = await handle.wait()
        finally:
            if registration is not None:
                registration.dispose()
            handle.kill()

        if cancel_token is not None and cancel_token.is_cancelled:
            raise OperationCancelledError(
                f"{tool.value} was cancelled", {"tool": tool.value}
            )

        if returncode != 0:
            exit_code = returncode if returncode is not None else -1
            self.logger.debug(f"{tool.value} failed with exit code {exit_code}")
            raise ToolExitError(tool, exit_code, handle.stderr_lines)

        return "\n".join(handle.stdout_lines)
