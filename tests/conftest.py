"""Shared fixtures: settings pointing at temp dirs and fake external tools."""

import json
import sys
import textwrap
from pathlib import Path
from typing import Callable, List

import pytest

from dvdripper.config.settings import Settings

# Prepended to every fake tool: appends its argv to "<tool>.calls" as JSON.
RECORD_CALLS = """\
import json, os, sys
_calls = os.path.join(os.path.dirname(os.path.abspath(__file__)),
                      os.path.basename(__file__) + ".calls")
with open(_calls, "a") as _f:
    _f.write(json.dumps(sys.argv[1:]) + "\\n")
"""


@pytest.fixture
def bin_dir(tmp_path, monkeypatch):
    """Directory holding fake tools; PATH is restricted to it."""
    directory = tmp_path / "bin"
    directory.mkdir()
    monkeypatch.setenv("PATH", str(directory))
    return directory


@pytest.fixture
def settings(tmp_path, bin_dir):
    """Settings with every directory under tmp_path."""
    return Settings(
        output_dir=tmp_path / "output",
        temp_dir=tmp_path / "temp",
        bin_dir=bin_dir,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def fake_tool(bin_dir) -> Callable[[str, str], Path]:
    """Create an executable Python script standing in for an external tool."""

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(
            f"#!{sys.executable}\n" + RECORD_CALLS + textwrap.dedent(body)
        )
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def tool_calls(bin_dir) -> Callable[[str], List[List[str]]]:
    """Read the recorded argv of every invocation of a fake tool."""

    def _calls(name: str) -> List[List[str]]:
        calls_file = bin_dir / f"{name}.calls"
        if not calls_file.exists():
            return []
        return [
            json.loads(line)
            for line in calls_file.read_text().splitlines()
            if line.strip()
        ]

    return _calls
