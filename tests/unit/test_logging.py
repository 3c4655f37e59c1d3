"""Tests for the logging configuration module."""

from pathlib import Path

import structlog

from ai_code_patcher.utils.logging import (
    MAX_VALUE_LENGTH,
    LogEventNames,
    LogFormat,
    LogLevel,
    add_context_processor,
    build_processors,
    bind_context,
    clear_context,
    code_truncator,
    configure_logging,
    get_logger,
    truncate_log_value,
    unbind_context,
)


class TestTruncateLogValue:
    """Tests for truncate_log_value function."""

    def test_short_string_unchanged(self) -> None:
        """Test that short strings pass through."""
        assert truncate_log_value("const a = 1;") == "const a = 1;"

    def test_long_string_truncated(self) -> None:
        """Test that long strings are cut with a length marker."""
        text = "x" * (MAX_VALUE_LENGTH + 20)
        result = truncate_log_value(text)
        assert result.startswith("x" * MAX_VALUE_LENGTH)
        assert result.endswith("... [20 more chars]")

    def test_custom_limit(self) -> None:
        """Test truncation with an explicit limit."""
        assert truncate_log_value("abcdef", limit=3) == "abc... [3 more chars]"

    def test_nested_dict(self) -> None:
        """Test that nested dicts are truncated recursively."""
        data = {"outer": {"snippet": "y" * 10}}
        result = truncate_log_value(data, limit=4)
        assert result["outer"]["snippet"] == "yyyy... [6 more chars]"

    def test_list_and_tuple_keep_type(self) -> None:
        """Test that sequences keep their type."""
        assert truncate_log_value(["ab", "abcdef"], limit=3) == ["ab", "abc... [3 more chars]"]
        assert isinstance(truncate_log_value(("a", "b")), tuple)

    def test_non_string(self) -> None:
        """Test that non-strings are passed through."""
        assert truncate_log_value(123) == 123
        assert truncate_log_value(None) is None
        assert truncate_log_value(True) is True


class TestCodeTruncator:
    """Tests for the code_truncator processor."""

    def test_truncates_long_values(self) -> None:
        """Test that the processor shortens long values."""
        event_dict = {"event": "patch_started", "snippet": "z" * (MAX_VALUE_LENGTH * 2)}
        result = code_truncator(None, "info", event_dict)  # type: ignore
        assert len(result["snippet"]) < MAX_VALUE_LENGTH * 2
        assert result["event"] == "patch_started"

    def test_preserves_other_values(self) -> None:
        """Test that short values are preserved."""
        event_dict = {"event": "plan_created", "additions": 2, "skipped": ["a"]}
        result = code_truncator(None, "info", event_dict)  # type: ignore
        assert result == event_dict


class TestAddContextProcessor:
    """Tests for add_context_processor."""

    def test_adds_service_and_version(self) -> None:
        """Test that service name and version are added."""
        result = add_context_processor(None, "info", {"event": "x"})  # type: ignore
        assert result["service"] == "ai-code-patcher"
        assert "version" in result


class TestBuildProcessors:
    """Tests for build_processors function."""

    def test_json_renderer_last(self) -> None:
        """Test that the JSON chain ends with the JSON renderer."""
        processors = build_processors(LogFormat.JSON)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_last(self) -> None:
        """Test that the console chain ends with the console renderer."""
        processors = build_processors(LogFormat.CONSOLE)
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_truncation_before_exception_formatting(self) -> None:
        """Test that code values are truncated before tracebacks are rendered."""
        processors = build_processors(LogFormat.JSON)
        assert processors.index(code_truncator) < processors.index(
            structlog.processors.format_exc_info
        )


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_console_format(self) -> None:
        """Test configuration with console format."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)

    def test_configure_with_json_format(self) -> None:
        """Test configuration with JSON format."""
        configure_logging(level=LogLevel.INFO, log_format=LogFormat.JSON)

    def test_configure_with_string_values(self) -> None:
        """Test configuration with string values."""
        configure_logging(level="warning", log_format="JSON")

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test configuration with file logging in a nested directory."""
        log_file = tmp_path / "logs" / "patcher.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )
        assert log_file.parent.is_dir()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_returns_bound_logger(self) -> None:
        """Test that get_logger returns a structlog logger."""
        configure_logging()
        log = get_logger("test")
        assert log is not None


class TestContextFunctions:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self) -> None:
        """Test binding and clearing context."""
        bind_context(file_name="app.js", error_line=3)
        assert structlog.contextvars.get_contextvars()["file_name"] == "app.js"
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_unbind_context(self) -> None:
        """Test unbinding specific context keys."""
        bind_context(file_name="app.js", strategy="structural")
        unbind_context("file_name")
        assert "file_name" not in structlog.contextvars.get_contextvars()
        assert structlog.contextvars.get_contextvars()["strategy"] == "structural"
        clear_context()


class TestEnums:
    """Tests for the logging enums and event names."""

    def test_log_levels(self) -> None:
        """Test that all expected log levels exist."""
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]

    def test_log_formats(self) -> None:
        """Test that all expected formats exist."""
        assert LogFormat.JSON.value == "json"
        assert LogFormat.CONSOLE.value == "console"

    def test_event_names_are_snake_case(self) -> None:
        """Test that event names match their constant names."""
        for attribute in dir(LogEventNames):
            if attribute.isupper():
                assert getattr(LogEventNames, attribute) == attribute.lower()
