"""File handle backed by a path on the local file system.

Writes are buffered and committed on close by writing a temporary file
next to the target and renaming it over the original, so a failed patch
never leaves a half-written file behind.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

import structlog

log = structlog.get_logger()


class LocalWritableStream:
    """Buffering stream that atomically replaces its file on close."""

    def __init__(self, path: Path, encoding: str = "utf-8") -> None:
        self._path = path
        self._encoding = encoding
        self._chunks: list[str] = []
        self._closed = False

    async def write(self, text: str) -> None:
        """Buffer text for the file.

        Raises:
            ValueError: If the stream was already closed
        """
        if self._closed:
            raise ValueError("Stream is closed")
        self._chunks.append(text)

    async def close(self) -> None:
        """Commit the buffered text to the file.

        Raises:
            OSError: If the temporary file cannot be written or renamed
        """
        if self._closed:
            return
        self._closed = True
        content = "".join(self._chunks)
        await asyncio.to_thread(self._replace, content)
        log.debug("local_file_replaced", path=str(self._path), length=len(content))

    def _replace(self, content: str) -> None:
        fd, temp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding=self._encoding, newline="") as handle:
                handle.write(content)
            if self._path.exists():
                os.chmod(temp_name, self._path.stat().st_mode & 0o7777)
            os.replace(temp_name, self._path)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise


class LocalFileHandle:
    """FileHandle implementation for a local path.

    Example:
        handle = LocalFileHandle(Path("src/app.ts"))
        text = await handle.read_text()
        writable = await handle.create_writable()
        await writable.write(patched)
        await writable.close()
    """

    def __init__(self, path: Path | str, encoding: str = "utf-8") -> None:
        """Initialize the handle.

        Args:
            path: File to read and patch
            encoding: Text encoding of the file
        """
        self._path = Path(path)
        self._encoding = encoding

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def path(self) -> Path:
        return self._path

    async def read_text(self) -> str:
        """Read the file, keeping its line endings untouched."""

        def read_sync() -> str:
            with open(self._path, encoding=self._encoding, newline="") as handle:
                return handle.read()

        return await asyncio.to_thread(read_sync)

    async def create_writable(self) -> LocalWritableStream:
        if not self._path.parent.is_dir():
            raise FileNotFoundError(f"Directory does not exist: {self._path.parent}")
        return LocalWritableStream(self._path, self._encoding)
