"""Structured logging configuration with code-payload truncation.

This module provides logging configuration for the AI Code Patcher:
- Configurable log levels and output formats (JSON/console)
- Truncation of long code values so patched files don't flood the logs
- Context injection for correlation (file name, strategy, error line)
- File and console output support
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog
from structlog.typing import WrappedLogger

# Values longer than this are cut down before rendering
MAX_VALUE_LENGTH = 500


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def truncate_log_value(value: Any, limit: int = MAX_VALUE_LENGTH) -> Any:
    """Recursively shorten long strings in log values.

    Args:
        value: Value to truncate (can be nested dict/list/str)
        limit: Maximum string length kept

    Returns:
        Value with long strings replaced by a prefix and a length marker
    """
    if isinstance(value, str):
        if len(value) <= limit:
            return value
        return f"{value[:limit]}... [{len(value) - limit} more chars]"
    elif isinstance(value, dict):
        return {k: truncate_log_value(v, limit) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(truncate_log_value(v, limit) for v in value)
    else:
        return value


def code_truncator(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor that truncates long values in log entries.

    Snippets and whole source files are routinely bound to log calls; this
    keeps individual entries readable.

    Args:
        logger: Logger instance (unused)
        method_name: Log method name (unused)
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with long values truncated
    """
    result = truncate_log_value(dict(event_dict))
    return cast(MutableMapping[str, Any], result)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add contextual information to all log entries.

    Adds standard fields for correlation and debugging:
    - service: Always "ai-code-patcher"
    - version: Current application version (if available)

    Args:
        logger: Logger instance (unused)
        method_name: Log method name (unused)
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with added context
    """
    event_dict["service"] = "ai-code-patcher"

    try:
        from ai_code_patcher._version import __version__

        event_dict["version"] = __version__
    except (ImportError, RuntimeError):
        pass

    return event_dict


def build_processors(log_format: LogFormat) -> list[Any]:
    """Return the structlog processor chain for a renderer.

    Code values are truncated before exception info is formatted so
    tracebacks are never cut.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        code_truncator,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(), exception_formatter=structlog.dev.plain_traceback
            )
        )
    return processors


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structlog and the stdlib root logger.

    Log lines always go to stderr because stdout may carry the snippet
    when the stdout clipboard is in use.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        configure_logging(level="DEBUG", log_format="console")
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    log_format = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format
    numeric_level = getattr(logging, level.value)

    structlog.configure(
        processors=build_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_enabled and file_path:
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path))
        except OSError as e:
            print(f"Could not create log file {path}: {e}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(numeric_level)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str | None = None) -> WrappedLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to caller's module)

    Returns:
        Configured structlog logger
    """
    return cast(WrappedLogger, structlog.get_logger(name))


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls.

    Args:
        **kwargs: Key-value pairs to bind

    Example:
        bind_context(file_name="app.js", error_line=12)
        log.info("patch_planned")  # Includes file_name and error_line
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove contextual variables.

    Args:
        *keys: Keys to unbind
    """
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names for consistency.

    Use these constants so a patch attempt can be followed end to end in
    aggregated logs.
    """

    # Patch attempt lifecycle
    PATCH_STARTED = "patch_started"
    PATCH_APPLIED = "patch_applied"
    PATCH_FAILED = "patch_failed"
    PATCH_NOOP = "patch_noop"

    # Parsing
    SOURCE_PARSED = "source_parsed"
    SOURCE_PARSE_ERROR = "source_parse_error"
    SNIPPET_SEGMENTED = "snippet_segmented"
    SNIPPET_UNPARSEABLE = "snippet_unparseable"
    SNIPPET_SLICE_DISCARDED = "snippet_slice_discarded"

    # Planning
    ERROR_LOCATED = "error_located"
    PLAN_CREATED = "plan_created"
    DECLARATION_SKIPPED = "declaration_skipped"
    DECLARATION_REPLACED = "declaration_replaced"
    DECLARATION_ADDED = "declaration_added"
    CLASS_MEMBER_ADDED = "class_member_added"
    STRUCTURAL_EDIT_ERROR = "structural_edit_error"
    DOCUMENT_REGENERATED = "document_regenerated"

    # Strategy cascade
    STRATEGY_START = "strategy_start"
    STRATEGY_RESULT = "strategy_result"
    STRATEGY_ERROR = "strategy_error"
    STUB_SYNTHESIZED = "stub_synthesized"

    # Side effects
    FILE_WRITTEN = "file_written"
    FILE_WRITE_ERROR = "file_write_error"
    CLIPBOARD_COPIED = "clipboard_copied"
    CLIPBOARD_ERROR = "clipboard_error"

    # Status notifications
    STATUS_NOTIFIED = "status_notified"
    STATUS_CALLBACK_ERROR = "status_callback_error"
