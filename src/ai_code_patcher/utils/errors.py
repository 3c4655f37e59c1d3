"""Exception hierarchy for the patch engine.

Every failure the engine can classify derives from PatcherError so callers
can catch the whole family at the process boundary.
"""

from __future__ import annotations

# =============================================================================
# Custom Exceptions
# =============================================================================


class PatcherError(Exception):
    """Base exception for all patcher errors."""


class SourceParseError(PatcherError):
    """The target file could not be parsed into a usable syntax tree.

    Attributes:
        error_ratio: Share of the non-blank source covered by ERROR nodes.
    """

    def __init__(self, message: str, error_ratio: float | None = None) -> None:
        super().__init__(message)
        self.error_ratio = error_ratio


class SnippetParseError(PatcherError):
    """A snippet fragment could not be parsed in any mode."""


class StructuralEditError(PatcherError):
    """A single tree edit (replace, insert, member splice) could not be applied.

    Attributes:
        name: Canonical name of the declaration being edited, if known.
    """

    def __init__(self, message: str, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class FileWriteError(PatcherError):
    """Persisting patched text through the file handle failed."""


class ConfigurationError(PatcherError):
    """Configuration is invalid or inconsistent."""


class ClipboardError(PatcherError):
    """Copying text to the clipboard failed."""
