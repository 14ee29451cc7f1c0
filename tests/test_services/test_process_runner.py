"""Tests for the shared process runner."""

import asyncio
import os
import time

import pytest

from dvdripper.exceptions import OperationCancelledError
from dvdripper.services.process_runner import (
    STDERR,
    STDOUT,
    ProcessRunner,
    Tool,
    ToolExitError,
    ToolLaunchError,
)
from dvdripper.utils.cancellation import CancellationToken


@pytest.fixture
def runner(settings):
    """Process runner using the fake tool directory."""
    return ProcessRunner(settings)


def pid_is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


class TestResolve:
    """Test cases for tool resolution."""

    def test_prefers_bin_dir(self, runner, fake_tool):
        """Test tools in bin_dir are used."""
        path = fake_tool("lsdvd", "")
        assert runner.resolve(Tool.LSDVD) == str(path)

    def test_falls_back_to_path(self, runner, tmp_path, monkeypatch):
        """Test tools are looked up on PATH when missing from bin_dir."""
        system_bin = tmp_path / "system"
        system_bin.mkdir()
        tool = system_bin / "mkvmerge"
        tool.write_text("#!/bin/sh\nexit 0\n")
        tool.chmod(0o755)
        monkeypatch.setenv("PATH", str(system_bin))

        assert runner.resolve(Tool.MKVMERGE) == str(tool)

    def test_non_executable_in_bin_dir_ignored(self, runner, bin_dir):
        """Test a non-executable file in bin_dir is not used."""
        (bin_dir / "ffmpeg").write_text("not a program")

        with pytest.raises(ToolLaunchError, match="ffmpeg not found"):
            runner.resolve(Tool.FFMPEG)

    def test_missing_tool(self, runner):
        """Test a missing tool raises ToolLaunchError."""
        with pytest.raises(ToolLaunchError) as exc_info:
            runner.resolve(Tool.MPV)
        assert exc_info.value.context == {"tool": "mpv"}


class TestRun:
    """Test cases for ProcessRunner.run."""

    @pytest.mark.asyncio
    async def test_returns_stdout(self, runner, fake_tool):
        """Test stdout lines are joined and returned."""
        fake_tool(
            "lsdvd",
            """
            print("<lsdvd>")
            print("</lsdvd>")
            """,
        )

        output = await runner.run(Tool.LSDVD, ["-Ox", "/dev/sr0"])

        assert output == "<lsdvd>\n</lsdvd>"

    @pytest.mark.asyncio
    async def test_lines_split_on_carriage_return(self, runner, fake_tool):
        """Test CR-separated status updates become separate lines."""
        fake_tool(
            "mpv",
            """
            sys.stderr.write("a 1%\\ra 2%\\r\\nlast")
            sys.stderr.flush()
            """,
        )
        lines = []

        await runner.run(Tool.MPV, [], on_line=lambda s, t: lines.append((s, t)))

        assert lines == [(STDERR, "a 1%"), (STDERR, "a 2%"), (STDERR, "last")]

    @pytest.mark.asyncio
    async def test_streaming_does_not_accumulate(self, runner, fake_tool):
        """Test streaming mode forwards lines but returns nothing."""
        fake_tool("mkvmerge", 'print("Progress: 50%")\n')
        lines = []

        output = await runner.run(
            Tool.MKVMERGE,
            [],
            streaming=True,
            on_line=lambda s, t: lines.append((s, t)),
        )

        assert output == ""
        assert lines == [(STDOUT, "Progress: 50%")]

    @pytest.mark.asyncio
    async def test_arguments_passed_verbatim(
        self, runner, fake_tool, tool_calls, tmp_path
    ):
        """Test paths containing spaces and quotes stay one argument."""
        fake_tool("mkvmerge", "")
        output = tmp_path / "My Movies" / "Don't \"Stop\".mkv"

        await runner.run(Tool.MKVMERGE, ["-o", output, "raw file.vob"])

        assert tool_calls("mkvmerge") == [["-o", str(output), "raw file.vob"]]

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, runner, fake_tool):
        """Test a failing tool raises ToolExitError carrying stderr."""
        fake_tool(
            "mkvmerge",
            """
            sys.stderr.write("Error: timestamps out of order\\n")
            sys.exit(2)
            """,
        )

        with pytest.raises(ToolExitError) as exc_info:
            await runner.run(Tool.MKVMERGE, [])

        assert exc_info.value.returncode == 2
        assert exc_info.value.stderr_lines == ["Error: timestamps out of order"]
        assert "timestamps out of order" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_zero_exit_without_stderr(self, runner, fake_tool):
        """Test the generic message is used when stderr is empty."""
        fake_tool("lsdvd", "sys.exit(5)\n")

        with pytest.raises(ToolExitError, match="lsdvd exited with non-zero code 5"):
            await runner.run(Tool.LSDVD, [])

    @pytest.mark.asyncio
    async def test_stderr_is_bounded(self, runner, fake_tool):
        """Test only the most recent stderr lines are kept."""
        fake_tool(
            "ffmpeg",
            """
            for i in range(600):
                sys.stderr.write(f"line {i}\\n")
            sys.exit(1)
            """,
        )

        with pytest.raises(ToolExitError) as exc_info:
            await runner.run(Tool.FFMPEG, [])

        assert len(exc_info.value.stderr_lines) == 500
        assert exc_info.value.stderr_lines[-1] == "line 599"

    @pytest.mark.asyncio
    async def test_missing_tool(self, runner):
        """Test a missing tool raises ToolLaunchError."""
        with pytest.raises(ToolLaunchError):
            await runner.run(Tool.MPLAYER, [])

    @pytest.mark.asyncio
    async def test_unstartable_tool(self, runner, bin_dir):
        """Test exec failures are reported as ToolLaunchError."""
        broken = bin_dir / "mpv"
        broken.write_text("#!/nonexistent/interpreter\n")
        broken.chmod(0o755)

        with pytest.raises(ToolLaunchError, match="Failed to start mpv"):
            await runner.run(Tool.MPV, [])

    @pytest.mark.asyncio
    async def test_failing_line_callback_is_ignored(self, runner, fake_tool, caplog):
        """Test an exception in on_line does not break the run."""
        fake_tool("lsdvd", 'print("hello")\n')

        def on_line(stream, text):
            raise RuntimeError("consumer broke")

        output = await runner.run(Tool.LSDVD, [], on_line=on_line)

        assert output == "hello"
        assert "line callback failed: consumer broke" in caplog.text


class TestCancellation:
    """Test cases for cancellation while running."""

    @pytest.mark.asyncio
    async def test_pre_cancelled_token_does_not_spawn(
        self, runner, fake_tool, tool_calls
    ):
        """Test nothing is started when already cancelled."""
        fake_tool("lsdvd", "")
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await runner.run(Tool.LSDVD, [], cancel_token=token)

        assert tool_calls("lsdvd") == []

    @pytest.mark.asyncio
    async def test_cancel_kills_running_tool(self, runner, fake_tool, bin_dir):
        """Test cancelling kills the process and raises promptly."""
        fake_tool(
            "mplayer",
            """
            import time
            with open(os.path.join(os.path.dirname(__file__), "mplayer.pid"), "w") as f:
                f.write(str(os.getpid()))
            time.sleep(30)
            """,
        )
        token = CancellationToken()
        pid_file = bin_dir / "mplayer.pid"

        async def cancel_when_started():
            while not pid_file.exists() or not pid_file.read_text():
                await asyncio.sleep(0.05)
            token.cancel()

        started = time.monotonic()
        canceller = asyncio.ensure_future(cancel_when_started())
        with pytest.raises(OperationCancelledError):
            await runner.run(Tool.MPLAYER, [], cancel_token=token)
        await canceller

        assert time.monotonic() - started < 10
        assert not pid_is_alive(int(pid_file.read_text()))

    @pytest.mark.asyncio
    async def test_cancel_from_another_thread(self, runner, fake_tool):
        """Test cancellation requested off the event loop thread."""
        fake_tool("ffmpeg", "import time\ntime.sleep(30)\n")
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.3, lambda: loop.run_in_executor(None, token.cancel))

        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(
                runner.run(Tool.FFMPEG, [], cancel_token=token), timeout=10
            )

    @pytest.mark.asyncio
    async def test_start_and_kill_handle(self, runner, fake_tool):
        """Test a started handle can be killed and reports its exit code."""
        fake_tool("mpv", "import time\ntime.sleep(30)\n")

        handle = await runner.start(Tool.MPV, ["dvd://1"])
        assert handle.is_running
        assert handle.returncode is None
        assert await handle.wait(timeout=0.1) is None

        handle.kill()
        handle.kill()
        returncode = await handle.wait(timeout=10)

        assert returncode is not None and returncode != 0
        assert handle.kill_requested
        assert not handle.is_running
        assert handle.command_line.endswith("mpv dvd://1")
