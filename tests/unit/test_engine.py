"""Tests for the patch engine and its strategy cascade."""

import pytest
import structlog

from ai_code_patcher.adapters.clipboard.memory import InMemoryClipboard
from ai_code_patcher.adapters.files.memory import InMemoryFileHandle
from ai_code_patcher.config.schema import FallbackConfig, ParserConfig, PatcherConfig
from ai_code_patcher.core.engine import PatchEngine, copy_to_clipboard, default_strategies
from ai_code_patcher.core.error_locator import ErrorLocator
from ai_code_patcher.core.snippet_segmenter import SnippetSegmenter
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.core.strategy import PatchAttempt, StructuralStrategy
from ai_code_patcher.models.error import ErrorContext, ErrorDescriptor, ErrorInfo
from ai_code_patcher.models.patch import (
    Applied,
    Failed,
    NoOp,
    PatchPlan,
    Replacement,
    StrategyResult,
)
from ai_code_patcher.utils.logging import configure_logging


class FailingWritableHandle(InMemoryFileHandle):
    """File handle whose writes always fail."""

    async def create_writable(self):
        raise OSError("disk full")


class BrokenClipboard:
    """Clipboard that is never available."""

    async def write_text(self, text: str) -> None:
        raise RuntimeError("no clipboard")


class CrashingStrategy:
    """Strategy that raises."""

    name = "crashing"

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        raise RuntimeError("boom")


class RecordingStrategy:
    """Strategy that records the context it saw and returns a fixed result."""

    def __init__(self, name: str, result: StrategyResult) -> None:
        self.name = name
        self.result = result
        self.contexts: list[ErrorContext] = []

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        self.contexts.append(attempt.context)
        return self.result


class TestDefaultStrategies:
    """Tests for the cascade built from configuration."""

    def test_full_cascade(self, engine: PatchEngine) -> None:
        """Test the default order."""
        assert engine.strategy_names == ["structural", "class_member_text", "custom", "fallback"]

    def test_disabled_fixes(self) -> None:
        """Test that disabled text fixes are left out."""
        config = PatcherConfig(
            fallback=FallbackConfig(enable_class_member_fix=False, enable_custom_fix=False)
        )
        assert [s.name for s in default_strategies(config)] == ["structural", "fallback"]


class TestScenarios:
    """End-to-end patch scenarios."""

    @pytest.mark.asyncio
    async def test_missing_function_added(
        self, engine: PatchEngine, clipboard: InMemoryClipboard, pricing_source: str
    ) -> None:
        """Test adding a missing helper after the last variable."""
        handle = InMemoryFileHandle("pricing.js", pricing_source)
        snippet = "```javascript\nconst formatPrice = (v) => `$${v.toFixed(2)}`;\n```"

        patched = await engine.process_code_fix(
            handle,
            pricing_source,
            "",
            snippet,
            ErrorInfo(message="ReferenceError: formatPrice is not defined", line_number=6),
        )

        assert patched is True
        assert handle.writes == 1
        assert (
            "const TAX = 0.2;\n\nconst formatPrice = (v) => `$${v.toFixed(2)}`;\n\nfunction total"
            in handle.content
        )
        assert clipboard.history == []

    @pytest.mark.asyncio
    async def test_second_apply_changes_nothing(
        self, engine: PatchEngine, pricing_source: str
    ) -> None:
        """Test that applying the same fix twice leaves the file as it was."""
        handle = InMemoryFileHandle("pricing.js", pricing_source)
        snippet = "const formatPrice = (v) => `$${v.toFixed(2)}`;"
        error = ErrorInfo(message="formatPrice is not defined", line_number=6)

        assert await engine.process_code_fix(handle, handle.content, "", snippet, error) is True
        once = handle.content
        assert await engine.process_code_fix(handle, once, "", snippet, error) is False
        assert handle.content == once
        assert handle.writes == 1
        assert once.count("const formatPrice") == 1

    @pytest.mark.asyncio
    async def test_function_replaced_without_error_info(
        self, engine: PatchEngine, clipboard: InMemoryClipboard
    ) -> None:
        """Test replacing a changed function when no error details are given."""
        source = "function helper() { return 1; }\n"
        handle = InMemoryFileHandle("util.js", source)

        report = await engine.apply(handle, source, "function helper() { return 2; }")

        assert report.success is True
        assert report.strategy == "structural"
        assert report.replacements == 1
        assert report.additions == 0
        assert handle.content == "function helper() { return 2; }\n"
        assert clipboard.history == []

    @pytest.mark.asyncio
    async def test_class_property_added(self, engine: PatchEngine, widget_source: str) -> None:
        """Test that a property snippet lands inside the class."""
        handle = InMemoryFileHandle("widget.js", widget_source)

        patched = await engine.process_code_fix(
            handle,
            widget_source,
            "",
            "label = 'x';",
            ErrorInfo(message="label is not defined", line_number=3),
        )

        assert patched is True
        assert handle.content.startswith("class Widget {\n  label = 'x';\n  render() {\n")
        assert handle.content.endswith("export default Widget;\n")

    @pytest.mark.asyncio
    async def test_unparseable_snippet_goes_to_clipboard(
        self, engine: PatchEngine, clipboard: InMemoryClipboard
    ) -> None:
        """Test that a snippet nothing can use is copied and the file kept."""
        source = "const a = 1;\n"
        handle = InMemoryFileHandle("app.js", source)
        messages: list[tuple[str, str]] = []

        patched = await engine.process_code_fix(
            handle,
            source,
            "",
            "const = = =;",
            status_callback=lambda message, level: messages.append((message, level)),
        )

        assert patched is False
        assert handle.writes == 0
        assert clipboard.history == ["const = = =;"]
        assert any(level == "warning" for _, level in messages)

    @pytest.mark.asyncio
    async def test_stub_keeps_snippet_on_clipboard(
        self, engine: PatchEngine, clipboard: InMemoryClipboard, pricing_source: str
    ) -> None:
        """Test that a synthesized stub is written and the snippet stays copied."""
        handle = InMemoryFileHandle("pricing.js", pricing_source)

        report = await engine.apply(
            handle,
            pricing_source,
            "const = = =;",
            ErrorInfo(message="formatPrice is not defined", line_number=6),
        )

        assert report.success is True
        assert report.strategy == "fallback"
        assert report.copied_to_clipboard is True
        assert "const formatPrice = () => {" in handle.content
        assert clipboard.history == ["const = = =;"]

    @pytest.mark.asyncio
    async def test_typescript_file(self, engine: PatchEngine) -> None:
        """Test patching with the TypeScript grammar."""
        source = "interface Props {\n  label: string;\n}\n\nexport function show(p: Props): string {\n  return fmt(p.label);\n}\n"
        handle = InMemoryFileHandle("show.ts", source)

        patched = await engine.process_code_fix(
            handle,
            source,
            "",
            "function fmt(value: string): string {\n  return value.trim();\n}",
            ErrorInfo(message="Cannot find name 'fmt'.", line_number=6),
        )

        assert patched is True
        assert "function fmt(value: string): string {\n  return value.trim();\n}" in handle.content
        assert handle.content.count("interface Props") == 1

    @pytest.mark.asyncio
    async def test_multi_declarator_snippet_no_duplicates(self, engine: PatchEngine) -> None:
        """Test that a declared name in a multi-declarator snippet is not declared twice."""
        source = "const a = 0;\n\nfunction run() {\n  return b;\n}\n"
        handle = InMemoryFileHandle("app.js", source)

        patched = await engine.process_code_fix(
            handle,
            source,
            "",
            "const a = 1, b = 2;",
            ErrorInfo(message="ReferenceError: b is not defined", line_number=4),
        )

        assert patched is True
        assert handle.content.count("const a") == 1
        assert "const a = 1;" in handle.content
        assert "const b = 2;" in handle.content
        assert "const a = 1, b = 2" not in handle.content


class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_unparseable_source(self, clipboard: InMemoryClipboard) -> None:
        """Test that a broken file is not touched and the snippet is copied."""
        engine = PatchEngine(
            PatcherConfig(parser=ParserConfig(max_error_ratio=0.1)), clipboard=clipboard
        )
        source = "}{ ) ( ]]] === ;;; {{{ )))"
        handle = InMemoryFileHandle("app.js", source)

        report = await engine.apply(handle, source, "const a = 1;")

        assert report.success is False
        assert report.copied_to_clipboard is True
        assert handle.writes == 0
        assert clipboard.text == "const a = 1;"

    @pytest.mark.asyncio
    async def test_write_failure(self, clipboard: InMemoryClipboard) -> None:
        """Test that a failing write returns False and copies the snippet."""
        engine = PatchEngine(clipboard=clipboard)
        source = "function helper() { return 1; }\n"
        handle = FailingWritableHandle("util.js", source)

        report = await engine.apply(handle, source, "function helper() { return 2; }")

        assert report.success is False
        assert report.strategy == "structural"
        assert report.copied_to_clipboard is True
        assert "disk full" in (report.reason or "")
        assert clipboard.text == "function helper() { return 2; }"

    @pytest.mark.asyncio
    async def test_status_callback_errors_ignored(self, engine: PatchEngine) -> None:
        """Test that a raising observer does not abort the patch."""
        source = "function helper() { return 1; }\n"
        handle = InMemoryFileHandle("util.js", source)

        def callback(message: str, level: str) -> None:
            raise RuntimeError("ui gone")

        patched = await engine.process_code_fix(
            handle, source, "", "function helper() { return 2; }", status_callback=callback
        )

        assert patched is True

    @pytest.mark.asyncio
    async def test_broken_clipboard(self) -> None:
        """Test that a failing clipboard is reported, not raised."""
        engine = PatchEngine(clipboard=BrokenClipboard())
        source = "const a = 1;\n"
        handle = InMemoryFileHandle("app.js", source)

        report = await engine.apply(handle, source, "const = = =;")

        assert report.success is False
        assert report.copied_to_clipboard is False


class TestCascade:
    """Tests for strategy ordering and error isolation."""

    @pytest.mark.asyncio
    async def test_crash_resets_context_and_continues(
        self, clipboard: InMemoryClipboard, widget_source: str
    ) -> None:
        """Test that a crashing strategy is skipped with an empty context."""
        recorder = RecordingStrategy("recorder", Applied(text="patched\n", summary="done"))
        engine = PatchEngine(clipboard=clipboard, strategies=[CrashingStrategy(), recorder])
        handle = InMemoryFileHandle("widget.js", widget_source)

        report = await engine.apply(
            handle,
            widget_source,
            "label = 'x';",
            ErrorInfo(message="label is not defined", line_number=3),
        )

        assert report.success is True
        assert report.strategy == "recorder"
        assert recorder.contexts == [ErrorContext.empty()]
        assert handle.content == "patched\n"

    @pytest.mark.asyncio
    async def test_noop_falls_through(self, clipboard: InMemoryClipboard) -> None:
        """Test that NoOp results move on to the next strategy."""
        first = RecordingStrategy("first", NoOp("nothing"))
        second = RecordingStrategy("second", Applied(text="x\n", summary="done", additions=1))
        engine = PatchEngine(clipboard=clipboard, strategies=[first, second])
        handle = InMemoryFileHandle("app.js", "const a = 1;\n")

        report = await engine.apply(handle, "const a = 1;\n", "const b = 2;")

        assert report.strategy == "second"
        assert report.additions == 1
        assert len(first.contexts) == 1

    @pytest.mark.asyncio
    async def test_terminal_failure_stops_cascade(self, clipboard: InMemoryClipboard) -> None:
        """Test that a terminal failure ends the cascade."""
        first = RecordingStrategy("first", Failed("stop here", terminal=True))
        second = RecordingStrategy("second", Applied(text="x\n", summary="done"))
        engine = PatchEngine(clipboard=clipboard, strategies=[first, second])
        handle = InMemoryFileHandle("app.js", "const a = 1;\n")

        report = await engine.apply(handle, "const a = 1;\n", "const b = 2;")

        assert report.success is False
        assert second.contexts == []
        assert handle.writes == 0
        assert clipboard.text == "const b = 2;"


class TestCopyToClipboard:
    """Tests for copy_to_clipboard."""

    @pytest.mark.asyncio
    async def test_copy(self, clipboard: InMemoryClipboard) -> None:
        """Test a successful copy."""
        assert await copy_to_clipboard(clipboard, "x", StatusReporter()) is True
        assert clipboard.text == "x"

    @pytest.mark.asyncio
    async def test_copy_failure_warns(self) -> None:
        """Test that a failing clipboard gives a warning status."""
        status = StatusReporter()
        assert await copy_to_clipboard(BrokenClipboard(), "x", status) is False
        assert status.messages[-1][1] == "warning"


class OverlappingPlanner:
    """Planner whose second replacement lies inside the first."""

    def plan(self, document, candidates, descriptor, context, status=None) -> PatchPlan:
        statement = document.root.named_children[0]
        candidate = candidates[0]
        return PatchPlan(
            nodes_to_replace=[
                Replacement(target=statement, candidate=candidate, text="let a = 3;"),
                Replacement(
                    target=statement.named_children[1], candidate=candidate, text="b = 4"
                ),
            ]
        )


class TestEditWarnings:
    """Tests for edits that cannot be applied."""

    @pytest.mark.asyncio
    async def test_unshapeable_candidate_reported(self, engine: PatchEngine) -> None:
        """Test that a candidate that cannot replace its declaration reaches the observer."""
        source = "let a = 1, b = 2;\n"
        handle = InMemoryFileHandle("app.js", source)
        received: list[tuple[str, str]] = []

        await engine.process_code_fix(
            handle,
            source,
            "",
            "function a() {}",
            status_callback=lambda message, level: received.append((message, level)),
        )

        warnings = [message for message, level in received if level == "warning"]
        assert any(message.startswith("Skipped a:") for message in warnings)

    def test_overlapping_edit_reported(self, parse) -> None:
        """Test that an edit the arena rejects becomes a warning and the rest still applies."""
        document = parse("let a = 1, b = 2;\n")
        strategy = StructuralStrategy()
        strategy._planner = OverlappingPlanner()
        status = StatusReporter()
        attempt = PatchAttempt(
            file_name="app.js",
            original_text=document.source,
            snippet="let a = 3;",
            descriptor=ErrorDescriptor.from_error_info(ErrorInfo(message="")),
            context=ErrorContext.empty(),
            document=document,
            candidates=SnippetSegmenter().segment("let a = 3;", document.dialect),
            status=status,
        )

        result = strategy.run(attempt)

        assert isinstance(result, Applied)
        assert result.text == "let a = 3;\n"
        assert [level for _, level in status.messages] == ["warning"]


class TestConfiguredLogging:
    """Tests that run the engine with structlog configured for the CLI."""

    @pytest.fixture(autouse=True)
    def configured(self):
        """Configure logging the way the command line does, then restore defaults."""
        configure_logging(level="debug", log_format="console")
        yield
        structlog.reset_defaults()

    @pytest.mark.asyncio
    async def test_method_lands_in_class(self, engine: PatchEngine, widget_source: str) -> None:
        """Test that a missing method is added to the class the error is in."""
        handle = InMemoryFileHandle("widget.js", widget_source)

        patched = await engine.process_code_fix(
            handle,
            widget_source,
            "",
            "format() {\n  return 'x';\n}",
            ErrorInfo(message="TypeError: this.format is not a function", line_number=3),
        )

        assert patched is True
        assert "function format" not in handle.content
        assert "\n  format() {\n" in handle.content
        assert handle.content.index("format()") < handle.content.index("export default")

    def test_locate_in_method(self, parse, widget_source: str) -> None:
        """Test that class-member facts are reported with debug logging on."""
        document = parse(widget_source)
        descriptor = ErrorDescriptor.from_error_info(
            ErrorInfo(message="label is not defined", line_number=3)
        )

        context = ErrorLocator().locate(document, descriptor)

        assert context.class_member.in_class is True
        assert context.class_member.class_name == "Widget"
        assert context.class_member.method_name == "render"
