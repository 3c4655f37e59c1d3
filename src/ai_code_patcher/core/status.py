"""Status notifications for a patch attempt."""

from __future__ import annotations

import structlog

from ai_code_patcher.interfaces.notifier import StatusCallback, StatusLevel
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()

_LOG_METHODS = {
    "info": "info",
    "success": "info",
    "warning": "warning",
    "error": "error",
}


class StatusReporter:
    """Forward status messages to an optional observer and to the log.

    Observers are outside the engine's control: anything they raise is
    logged and dropped so a broken UI cannot abort a patch.
    """

    def __init__(self, callback: StatusCallback | None = None) -> None:
        self._callback = callback
        self.messages: list[tuple[str, StatusLevel]] = []

    def notify(self, message: str, level: StatusLevel = "info") -> None:
        """Record a status message and pass it to the observer."""
        self.messages.append((message, level))
        getattr(log, _LOG_METHODS[level])(
            LogEventNames.STATUS_NOTIFIED, status=message, level=level
        )
        if self._callback is None:
            return
        try:
            self._callback(message, level)
        except Exception as e:
            log.warning(LogEventNames.STATUS_CALLBACK_ERROR, error=str(e), status=message)

    def info(self, message: str) -> None:
        self.notify(message, "info")

    def success(self, message: str) -> None:
        self.notify(message, "success")

    def warning(self, message: str) -> None:
        self.notify(message, "warning")

    def error(self, message: str) -> None:
        self.notify(message, "error")
