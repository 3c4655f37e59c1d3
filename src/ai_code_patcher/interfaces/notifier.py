"""Abstract interface for progress and outcome notifications."""

from typing import Literal, Protocol

StatusLevel = Literal["info", "success", "error", "warning"]


class StatusCallback(Protocol):
    """Observer notified about each step of a patch attempt.

    Callbacks are informational only; anything they raise is logged and
    ignored.
    """

    def __call__(self, message: str, level: StatusLevel) -> None:
        """
        Receive one status message.

        Args:
            message: Human-readable status text
            level: Severity of the message
        """
        ...
