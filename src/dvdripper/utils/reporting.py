"""Leveled log lines forwarded to a caller-supplied sink."""

import logging
from typing import Callable, Optional

LogSink = Callable[[str], None]

INFO = "INFO"
DEBUG = "DEBUG"
ERROR = "ERROR"

_LEVELS = {
    INFO: logging.INFO,
    DEBUG: logging.DEBUG,
    ERROR: logging.ERROR,
}


class LineReporter:
    """Emits job log lines to a module logger and an optional line sink.

    The sink receives ``"[LEVEL] message"`` strings in the same order the
    messages were reported. Sink failures are logged and otherwise ignored
    so a broken consumer cannot abort a rip.
    """

    def __init__(self, logger: logging.Logger, sink: Optional[LogSink] = None):
        self.logger = logger
        self.sink = sink

    def report(self, message: str, level: str = INFO) -> None:
        """Report a message at the given level (INFO, DEBUG or ERROR)."""
        level = level.upper()
        self.logger.log(_LEVELS.get(level, logging.INFO), message)

        if self.sink is None:
            return
        try:
            self.sink(f"[{level}] {message}")
        except Exception as e:
            self.logger.warning(f"Log sink raised {type(e).__name__}: {e}")

    def info(self, message: str) -> None:
        self.report(message, INFO)

    def debug(self, message: str) -> None:
        self.report(message, DEBUG)

    def error(self, message: str) -> None:
        self.report(message, ERROR)

    def with_logger(self, logger: logging.Logger) -> "LineReporter":
        """Return a reporter sharing this sink but logging under ``logger``."""
        return LineReporter(logger, self.sink)
