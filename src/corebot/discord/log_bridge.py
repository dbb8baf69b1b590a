"""Route discord.py library log records into the structured logger."""

from __future__ import annotations

import logging

import structlog

from corebot.logging import get_logger

LIBRARY_LOGGER = "discord"

# Library severity -> structlog method, one to one
SEVERITY_METHODS: dict[int, str] = {
    logging.CRITICAL: "critical",
    logging.ERROR: "error",
    logging.WARNING: "warning",
    logging.INFO: "info",
    logging.DEBUG: "debug",
}


def severity_method(levelno: int) -> str:
    """Return the structlog method name for a stdlib level number.

    Levels below DEBUG (library trace output) map to debug; any other
    unrecognised level maps to info.
    """
    method = SEVERITY_METHODS.get(levelno)
    if method is not None:
        return method
    if levelno < logging.DEBUG:
        return "debug"
    return "info"


class LogBridge(logging.Handler):
    """Logging handler that re-emits library records as structured events.

    Args:
        logger: Structured logger receiving the events.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        super().__init__(level=logging.NOTSET)
        self._logger = logger or get_logger(__name__)
        self._target: logging.Logger | None = None
        self._previous_propagate = True

    def emit(self, record: logging.LogRecord) -> None:
        try:
            log = getattr(self._logger, severity_method(record.levelno))
            if record.exc_info:
                log("discord_log", source=record.name, message=record.getMessage(), exc_info=record.exc_info)
            else:
                log("discord_log", source=record.name, message=record.getMessage())
        except Exception:
            self.handleError(record)

    def install(self, library_logger: str = LIBRARY_LOGGER) -> None:
        """Attach to the library logger and stop it propagating to root."""
        if self._target is not None:
            return
        target = logging.getLogger(library_logger)
        self._previous_propagate = target.propagate
        target.addHandler(self)
        target.propagate = False
        self._target = target

    def uninstall(self) -> None:
        """Detach from the library logger and restore propagation."""
        if self._target is None:
            return
        self._target.removeHandler(self)
        self._target.propagate = self._previous_propagate
        self._target = None
