"""Clipboards that do not touch the operating system."""

from __future__ import annotations

import sys
from typing import TextIO


class InMemoryClipboard:
    """Clipboard that remembers everything copied to it."""

    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def text(self) -> str | None:
        """Most recently copied text."""
        return self.history[-1] if self.history else None

    async def write_text(self, text: str) -> None:
        self.history.append(text)


class StdoutClipboard:
    """Clipboard that prints the text, for terminals without a clipboard."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    async def write_text(self, text: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(text)
        if not text.endswith("\n"):
            stream.write("\n")
        stream.flush()
