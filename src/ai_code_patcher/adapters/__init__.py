"""Concrete implementations of provider interfaces."""

from .clipboard.memory import InMemoryClipboard, StdoutClipboard
from .clipboard.system import SystemClipboard
from .files.local import LocalFileHandle
from .files.memory import InMemoryFileHandle

__all__ = [
    "InMemoryClipboard",
    "InMemoryFileHandle",
    "LocalFileHandle",
    "StdoutClipboard",
    "SystemClipboard",
]
