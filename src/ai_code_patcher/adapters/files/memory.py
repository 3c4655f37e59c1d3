"""In-memory file handle for embedding the engine and for tests."""

from __future__ import annotations


class InMemoryWritableStream:
    """Stream whose close() stores the written text on its handle."""

    def __init__(self, handle: InMemoryFileHandle) -> None:
        self._handle = handle
        self._chunks: list[str] = []

    async def write(self, text: str) -> None:
        self._chunks.append(text)

    async def close(self) -> None:
        self._handle.content = "".join(self._chunks)
        self._handle.writes += 1


class InMemoryFileHandle:
    """FileHandle holding its content in memory.

    Attributes:
        content: Current file content
        writes: Number of committed writes
    """

    def __init__(self, name: str, content: str = "") -> None:
        self._name = name
        self.content = content
        self.writes = 0

    @property
    def name(self) -> str:
        return self._name

    async def read_text(self) -> str:
        return self.content

    async def create_writable(self) -> InMemoryWritableStream:
        return InMemoryWritableStream(self)
