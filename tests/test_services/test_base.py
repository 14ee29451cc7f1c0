"""Tests for the BaseService class."""

import logging
from unittest.mock import Mock, patch

from dvdripper.services.base import BaseService
from dvdripper.utils.reporting import LineReporter


class TestBaseService:
    """Test the BaseService class."""

    def test_base_service_initialization(self, settings):
        """Test basic BaseService initialization."""
        service = BaseService(settings)

        assert service.settings == settings
        assert service.logger is not None
        assert service.logger.name == "dvdripper.services.base"

    def test_base_service_logger_uses_module_name(self, settings):
        """Test that logger uses the class module name."""
        with patch("dvdripper.services.base.get_logger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            service = BaseService(settings)

            mock_get_logger.assert_called_once_with("dvdripper.services.base")
            assert service.logger == mock_logger

    def test_reporter_uses_sink(self, settings):
        """Test a fresh reporter forwards to the given sink."""
        sink = Mock()
        service = BaseService(settings)

        reporter = service._reporter(sink)
        reporter.info("hello")

        assert reporter.logger is service.logger
        sink.assert_called_once_with("[INFO] hello")

    def test_reporter_reuses_existing_sink(self, settings):
        """Test an existing reporter's sink wins over the sink argument."""
        shared_sink = Mock()
        ignored_sink = Mock()
        existing = LineReporter(logging.getLogger("other"), shared_sink)
        service = BaseService(settings)

        reporter = service._reporter(ignored_sink, existing)
        reporter.error("boom")

        assert reporter.logger is service.logger
        shared_sink.assert_called_once_with("[ERROR] boom")
        ignored_sink.assert_not_called()

    def test_log_operation_start_without_context(self, settings):
        """Test logging operation start without context."""
        service = BaseService(settings)

        with patch.object(service.logger, "info") as mock_info:
            service._log_operation_start("scan")
            mock_info.assert_called_once_with("Starting scan")

    def test_log_operation_start_with_context(self, settings):
        """Test logging operation start with context."""
        service = BaseService(settings)

        with patch.object(service.logger, "info") as mock_info:
            service._log_operation_start("rip", title=3, device="/dev/sr0")
            mock_info.assert_called_once_with(
                "Starting rip (context: title=3, device=/dev/sr0)"
            )

    def test_log_operation_complete(self, settings):
        """Test logging operation completion."""
        service = BaseService(settings)

        with patch.object(service.logger, "info") as mock_info:
            service._log_operation_complete("rip", output="/tmp/a.mkv")
            mock_info.assert_called_once_with(
                "Completed rip (context: output=/tmp/a.mkv)"
            )

    def test_log_operation_error(self, settings):
        """Test logging operation errors."""
        service = BaseService(settings)
        error = ValueError("bad title")

        with patch.object(service.logger, "error") as mock_error:
            service._log_operation_error("rip", error)
            mock_error.assert_called_once_with("Failed rip: bad title")
