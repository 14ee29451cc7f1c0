"""Tests for line reporters."""

import logging
from unittest.mock import Mock

from dvdripper.utils.reporting import LineReporter


class TestLineReporter:
    """Test cases for LineReporter."""

    def test_sink_receives_prefixed_lines_in_order(self):
        """Test sink lines carry the level prefix in report order."""
        lines = []
        reporter = LineReporter(logging.getLogger("test.reporting"), lines.append)

        reporter.info("Scanning titles on /dev/sr0…")
        reporter.debug("Running: lsdvd -Ox /dev/sr0")
        reporter.error("lsdvd error: not found")

        assert lines == [
            "[INFO] Scanning titles on /dev/sr0…",
            "[DEBUG] Running: lsdvd -Ox /dev/sr0",
            "[ERROR] lsdvd error: not found",
        ]

    def test_messages_are_logged(self, caplog):
        """Test every message also goes to the logger."""
        reporter = LineReporter(logging.getLogger("test.reporting"))

        with caplog.at_level(logging.DEBUG, logger="test.reporting"):
            reporter.info("hello")
            reporter.error("bad")

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert (logging.INFO, "hello") in levels
        assert (logging.ERROR, "bad") in levels

    def test_lowercase_level_normalized(self):
        """Test report() upper-cases the level."""
        sink = Mock()
        LineReporter(logging.getLogger("test"), sink).report("x", "debug")
        sink.assert_called_once_with("[DEBUG] x")

    def test_failing_sink_is_logged_not_raised(self, caplog):
        """Test a broken sink does not propagate."""
        reporter = LineReporter(
            logging.getLogger("test.reporting"), Mock(side_effect=ValueError("gone"))
        )

        reporter.info("still works")

        assert "Log sink raised ValueError: gone" in caplog.text

    def test_with_logger_shares_sink(self):
        """Test with_logger keeps the sink."""
        sink = Mock()
        reporter = LineReporter(logging.getLogger("a"), sink)

        other = reporter.with_logger(logging.getLogger("b"))
        other.info("from b")

        assert other.logger.name == "b"
        sink.assert_called_once_with("[INFO] from b")
