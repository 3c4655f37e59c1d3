"""Utility functions and helpers.

This module provides various utilities for the AI Code Patcher:
- errors: Exception hierarchy
- logging: Structured logging with code-payload truncation
- text: Snippet cleaning and brace-aware text scanning
"""

from ai_code_patcher.utils.errors import (
    ClipboardError,
    ConfigurationError,
    FileWriteError,
    PatcherError,
    SnippetParseError,
    SourceParseError,
    StructuralEditError,
)
from ai_code_patcher.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from ai_code_patcher.utils.text import clean_code_example

__all__ = [
    # Errors
    "ClipboardError",
    "ConfigurationError",
    "FileWriteError",
    "PatcherError",
    "SnippetParseError",
    "SourceParseError",
    "StructuralEditError",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # Text
    "clean_code_example",
]
