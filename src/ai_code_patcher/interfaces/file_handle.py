"""Abstract interface for the file the engine patches."""

from typing import Protocol


class WritableStream(Protocol):
    """A stream that receives the full patched text and commits it on close."""

    async def write(self, text: str) -> None:
        """
        Buffer text for the file.

        Args:
            text: Complete new file content
        """
        ...

    async def close(self) -> None:
        """
        Commit buffered text to the file.

        Raises:
            OSError: If the content cannot be persisted
        """
        ...


class FileHandle(Protocol):
    """Abstract interface for a file chosen by the user.

    The engine never opens paths itself; whoever acquired the file
    (editor, browser file picker, CLI) passes a handle in.
    """

    @property
    def name(self) -> str:
        """File name, used to pick the grammar (e.g. "app.tsx")."""
        ...

    async def read_text(self) -> str:
        """
        Read the current file content.

        Returns:
            File content as text

        Raises:
            OSError: If the file cannot be read
        """
        ...

    async def create_writable(self) -> WritableStream:
        """
        Open a writable stream over the file.

        Returns:
            Stream whose close() persists the written text

        Raises:
            OSError: If the file cannot be opened for writing
        """
        ...
