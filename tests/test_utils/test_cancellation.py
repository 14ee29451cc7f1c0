"""Tests for cancellation tokens."""

import threading
from unittest.mock import Mock

import pytest

from dvdripper.exceptions import OperationCancelledError
from dvdripper.utils.cancellation import CancellationToken


class TestCancellationToken:
    """Test cases for CancellationToken."""

    def test_initial_state(self):
        """Test a new token is not cancelled."""
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        """Test cancel sets the flag and raise_if_cancelled raises."""
        token = CancellationToken()
        token.cancel()

        assert token.is_cancelled
        with pytest.raises(OperationCancelledError):
            token.raise_if_cancelled()

    def test_callbacks_run_once(self):
        """Test callbacks run on the first cancel only."""
        token = CancellationToken()
        callback = Mock()
        token.register(callback)

        token.cancel()
        token.cancel()

        callback.assert_called_once_with()

    def test_register_after_cancel_runs_immediately(self):
        """Test late registrations fire straight away."""
        token = CancellationToken()
        token.cancel()
        callback = Mock()

        token.register(callback)

        callback.assert_called_once_with()

    def test_disposed_registration_does_not_fire(self):
        """Test dispose removes the callback."""
        token = CancellationToken()
        callback = Mock()
        registration = token.register(callback)

        registration.dispose()
        registration.dispose()
        token.cancel()

        callback.assert_not_called()

    def test_registration_context_manager(self):
        """Test registrations dispose on context exit."""
        token = CancellationToken()
        callback = Mock()

        with token.register(callback):
            pass
        token.cancel()

        callback.assert_not_called()

    def test_failing_callback_does_not_block_others(self, caplog):
        """Test one failing callback does not stop the rest."""
        token = CancellationToken()
        second = Mock()
        token.register(Mock(side_effect=RuntimeError("broken")))
        token.register(second)

        token.cancel()

        second.assert_called_once_with()
        assert "Cancellation callback failed: broken" in caplog.text

    def test_cancel_from_another_thread(self):
        """Test cancellation can be requested from a different thread."""
        token = CancellationToken()
        fired = threading.Event()
        token.register(fired.set)

        thread = threading.Thread(target=token.cancel)
        thread.start()
        thread.join(timeout=5)

        assert fired.is_set()
        assert token.is_cancelled
