"""Protocol definitions for pluggable adapters."""

from .clipboard import Clipboard
from .file_handle import FileHandle, WritableStream
from .notifier import StatusCallback, StatusLevel

__all__ = ["Clipboard", "FileHandle", "StatusCallback", "StatusLevel", "WritableStream"]
