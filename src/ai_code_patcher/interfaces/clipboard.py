"""Abstract interface for the clipboard used as the last-resort fallback."""

from typing import Protocol


class Clipboard(Protocol):
    """Destination for a fix the engine could not apply automatically."""

    async def write_text(self, text: str) -> None:
        """
        Place text on the clipboard.

        Args:
            text: Text to copy

        Raises:
            ClipboardError: If the clipboard is unavailable
        """
        ...
