"""Tests for the exception hierarchy."""

import pytest

from dvdripper.config.settings import ConfigurationError
from dvdripper.exceptions import DVDRipperError, OperationCancelledError
from dvdripper.services.capture import CaptureError
from dvdripper.services.process_runner import (
    ProcessError,
    Tool,
    ToolExitError,
    ToolLaunchError,
)
from dvdripper.services.remux import RemuxError
from dvdripper.services.scanner import TitleParseError


class TestDVDRipperError:
    """Test cases for the base exception."""

    def test_message_only(self):
        """Test error without context."""
        error = DVDRipperError("Something failed")
        assert str(error) == "Something failed"
        assert error.context == {}

    def test_message_with_context(self):
        """Test error with context appends key=value pairs."""
        error = DVDRipperError("Something failed", {"tool": "mpv", "title": 3})
        assert str(error) == "Something failed (context: tool=mpv, title=3)"
        assert error.context["title"] == 3

    def test_can_be_raised_and_caught(self):
        """Test error behaves as a normal exception."""
        with pytest.raises(DVDRipperError, match="boom"):
            raise DVDRipperError("boom")


class TestHierarchy:
    """Test that every package error derives from DVDRipperError."""

    @pytest.mark.parametrize(
        "error_class",
        [
            ConfigurationError,
            OperationCancelledError,
            CaptureError,
            RemuxError,
            TitleParseError,
            ProcessError,
            ToolLaunchError,
        ],
    )
    def test_subclasses_base_error(self, error_class):
        """Test subclass relationship."""
        assert issubclass(error_class, DVDRipperError)

    def test_tool_errors_are_process_errors(self):
        """Test launch and exit errors share the ProcessError base."""
        assert issubclass(ToolLaunchError, ProcessError)
        assert issubclass(ToolExitError, ProcessError)


class TestToolExitError:
    """Test cases for ToolExitError."""

    def test_message_is_joined_stderr(self):
        """Test stderr lines form the message."""
        error = ToolExitError(Tool.MKVMERGE, 2, ["Error: bad timestamps", "abort"])

        assert error.returncode == 2
        assert error.tool is Tool.MKVMERGE
        assert str(error).startswith("Error: bad timestamps\nabort")
        assert error.context == {"tool": "mkvmerge", "returncode": 2}

    def test_message_without_stderr(self):
        """Test a generic message is used when stderr is empty."""
        error = ToolExitError(Tool.LSDVD, 1, [])
        assert str(error).startswith("lsdvd exited with non-zero code 1")
