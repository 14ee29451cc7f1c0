"""Tests for time formatting utilities."""

import pytest

from dvdripper.utils.time_format import format_clock, format_duration_human_readable


class TestFormatDurationHumanReadable:
    """Test cases for format_duration_human_readable."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "0s"),
            (45, "45s"),
            (60, "1m"),
            (1425, "23m 45s"),
            (3600, "1h"),
            (5025, "1h 23m 45s"),
            (7205, "2h 5s"),
            (-10, "0s"),
        ],
    )
    def test_format(self, seconds, expected):
        """Test human readable formatting."""
        assert format_duration_human_readable(seconds) == expected


class TestFormatClock:
    """Test cases for format_clock."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "0:00:00"),
            (59, "0:00:59"),
            (754, "0:12:34"),
            (7265, "2:01:05"),
            (-5, "0:00:00"),
        ],
    )
    def test_format(self, seconds, expected):
        """Test H:MM:SS formatting."""
        assert format_clock(seconds) == expected
