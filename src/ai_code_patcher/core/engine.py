"""Patch engine orchestrating one code-fix attempt.

This module contains the PatchEngine, which:
1. Parses the file and cleans the snippet
2. Locates the error and segments the snippet into candidates
3. Runs the strategy cascade until one produces new text
4. Persists the text through the file handle
5. Falls back to the clipboard when nothing could be applied
"""

from __future__ import annotations

import structlog

from ai_code_patcher.config.schema import PatcherConfig
from ai_code_patcher.core.error_locator import ErrorLocator
from ai_code_patcher.core.fallback import ClassMemberTextFix, CustomFix, FallbackFix
from ai_code_patcher.core.snippet_segmenter import SnippetSegmenter
from ai_code_patcher.core.source_parser import SourceParser
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.core.strategy import PatchAttempt, PatchStrategy, StructuralStrategy
from ai_code_patcher.interfaces.clipboard import Clipboard
from ai_code_patcher.interfaces.file_handle import FileHandle
from ai_code_patcher.interfaces.notifier import StatusCallback
from ai_code_patcher.models.error import ErrorContext, ErrorDescriptor, ErrorInfo
from ai_code_patcher.models.patch import Applied, CandidateDeclaration, Failed, PatchReport
from ai_code_patcher.utils.errors import FileWriteError, SnippetParseError, SourceParseError
from ai_code_patcher.utils.logging import LogEventNames, bind_context, unbind_context
from ai_code_patcher.utils.text import clean_code_example

log = structlog.get_logger()


def default_strategies(config: PatcherConfig) -> list[PatchStrategy]:
    """Build the strategy cascade in its fixed order.

    Structural patching always runs first; the text strategies follow
    when enabled in config.fallback.
    """
    strategies: list[PatchStrategy] = [StructuralStrategy(config)]
    if config.fallback.enable_class_member_fix:
        strategies.append(ClassMemberTextFix(config.formatting))
    if config.fallback.enable_custom_fix:
        strategies.append(CustomFix(config.formatting))
    if config.fallback.enable_fallback_fix:
        strategies.append(FallbackFix(config.fallback, config.formatting))
    return strategies


class PatchEngine:
    """Weave an AI-suggested snippet into a JavaScript/TypeScript file.

    The engine holds no state between attempts: every call builds its own
    document, context and arena.

    Example:
        engine = PatchEngine(config, clipboard=InMemoryClipboard())
        patched = await engine.process_code_fix(
            handle, original_text, "", snippet, ErrorInfo("foo is not defined", 12)
        )
    """

    def __init__(
        self,
        config: PatcherConfig | None = None,
        *,
        clipboard: Clipboard,
        strategies: list[PatchStrategy] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Patcher configuration (defaults apply when None)
            clipboard: Clipboard receiving the snippet when patching fails
            strategies: Strategy cascade (built from config when None)
        """
        self._config = config or PatcherConfig()
        self._clipboard = clipboard
        self._parser = SourceParser(self._config.parser)
        self._locator = ErrorLocator()
        self._segmenter = SnippetSegmenter(self._config.segmenter)
        self._strategies = strategies if strategies is not None else default_strategies(self._config)

    @property
    def strategy_names(self) -> list[str]:
        """Names of the strategies in cascade order."""
        return [strategy.name for strategy in self._strategies]

    async def process_code_fix(
        self,
        file_handle: FileHandle,
        original_file_content: str,
        original_source_snippet: str,
        new_code_snippet: str,
        error_info: ErrorInfo | None = None,
        status_callback: StatusCallback | None = None,
    ) -> bool:
        """Patch a file with a suggested snippet.

        Args:
            file_handle: Handle the patched text is written through
            original_file_content: Current file content
            original_source_snippet: Code the suggestion was made for (informational)
            new_code_snippet: Suggested code, possibly fenced or line-numbered
            error_info: Error message and location, if known
            status_callback: Observer for progress messages

        Returns:
            True when the file was written, False otherwise
        """
        report = await self.apply(
            file_handle,
            original_file_content,
            new_code_snippet,
            error_info,
            status_callback,
            original_source_snippet=original_source_snippet,
        )
        return report.success

    async def apply(
        self,
        file_handle: FileHandle,
        original_file_content: str,
        new_code_snippet: str,
        error_info: ErrorInfo | None = None,
        status_callback: StatusCallback | None = None,
        original_source_snippet: str = "",
    ) -> PatchReport:
        """Patch a file and report what happened.

        Same as process_code_fix, returning a PatchReport instead of a bool.
        """
        status = StatusReporter(status_callback)
        descriptor = ErrorDescriptor.from_error_info(error_info)
        snippet = clean_code_example(new_code_snippet)
        file_name = file_handle.name

        bind_context(file_name=file_name, error_line=descriptor.line_hint)
        try:
            log.info(
                LogEventNames.PATCH_STARTED,
                identifier=descriptor.error_identifier,
                has_line=descriptor.has_line,
                snippet_length=len(snippet),
                has_original_snippet=bool(original_source_snippet),
            )
            status.info(f"Analyzing {file_name}...")
            return await self._run(
                file_handle, original_file_content, snippet, descriptor, status
            )
        finally:
            unbind_context("file_name", "error_line")

    async def _run(
        self,
        file_handle: FileHandle,
        original_text: str,
        snippet: str,
        descriptor: ErrorDescriptor,
        status: StatusReporter,
    ) -> PatchReport:
        file_name = file_handle.name

        # Step 1: Parse the file; nothing structural is possible without it
        try:
            document = self._parser.parse(original_text, file_name)
        except SourceParseError as e:
            status.error(f"Could not parse {file_name}: {e}")
            copied = await self._copy_snippet(snippet, status)
            log.error(LogEventNames.PATCH_FAILED, reason="source_parse_error", error=str(e))
            return PatchReport(success=False, copied_to_clipboard=copied, reason=str(e))

        # Step 2: Locate the error and segment the snippet
        context = ErrorContext.empty()
        try:
            context = self._locator.locate(document, descriptor)
        except Exception as e:
            log.exception(LogEventNames.STRATEGY_ERROR, stage="locate", error=str(e))

        candidates: list[CandidateDeclaration] = []
        try:
            candidates = self._segment(snippet, document.dialect)
        except SnippetParseError as e:
            log.info(LogEventNames.SNIPPET_UNPARSEABLE, reason=str(e))
        except Exception as e:
            log.exception(LogEventNames.STRATEGY_ERROR, stage="segment", error=str(e))

        copied = False
        if not candidates:
            status.warning("Could not parse the suggested code; copied it to the clipboard.")
            copied = await self._copy_snippet(snippet, status)

        attempt = PatchAttempt(
            file_name=file_name,
            original_text=original_text,
            snippet=snippet,
            descriptor=descriptor,
            context=context,
            document=document,
            candidates=candidates,
            status=status,
        )

        # Step 3: Strategy cascade
        for strategy in self._strategies:
            log.debug(LogEventNames.STRATEGY_START, strategy=strategy.name)
            try:
                result = strategy.run(attempt)
            except Exception as e:
                log.exception(LogEventNames.STRATEGY_ERROR, strategy=strategy.name, error=str(e))
                attempt.context = ErrorContext.empty()
                continue

            log.info(
                LogEventNames.STRATEGY_RESULT,
                strategy=strategy.name,
                outcome=type(result).__name__.lower(),
                reason=getattr(result, "reason", None),
            )

            if isinstance(result, Applied):
                # Step 4: Persist
                try:
                    await persist_text(file_handle, result.text)
                except FileWriteError as e:
                    status.error(f"Error writing file: {e}")
                    if not copied:
                        copied = await self._copy_snippet(snippet, status)
                    log.error(LogEventNames.PATCH_FAILED, strategy=strategy.name, error=str(e))
                    return PatchReport(
                        success=False,
                        strategy=strategy.name,
                        copied_to_clipboard=copied,
                        reason=str(e),
                    )
                if result.keep_snippet_on_clipboard and not copied:
                    copied = await self._copy_snippet(snippet, status)
                status.success(result.summary)
                log.info(
                    LogEventNames.PATCH_APPLIED,
                    strategy=strategy.name,
                    additions=result.additions,
                    replacements=result.replacements,
                )
                return PatchReport(
                    success=True,
                    strategy=strategy.name,
                    text=result.text,
                    additions=result.additions,
                    replacements=result.replacements,
                    copied_to_clipboard=copied,
                )

            if isinstance(result, Failed) and result.terminal:
                status.error(result.reason)
                break

        # Step 5: Nothing applied
        if not copied:
            copied = await self._copy_snippet(snippet, status)
        status.warning("Could not apply the fix automatically; the suggested code is on the clipboard.")
        log.warning(LogEventNames.PATCH_NOOP, strategies=self.strategy_names)
        return PatchReport(success=False, copied_to_clipboard=copied, reason="no strategy applied")

    def _segment(self, snippet: str, dialect: str) -> list[CandidateDeclaration]:
        """Segment the snippet.

        Raises:
            SnippetParseError: If no candidate could be parsed
        """
        candidates = self._segmenter.segment(snippet, dialect)
        if not candidates:
            raise SnippetParseError("No declaration could be parsed from the snippet")
        return candidates

    async def _copy_snippet(self, snippet: str, status: StatusReporter) -> bool:
        return await copy_to_clipboard(self._clipboard, snippet, status)


async def persist_text(file_handle: FileHandle, text: str) -> None:
    """Write text through a file handle.

    Raises:
        FileWriteError: If opening, writing or closing the stream fails
    """
    try:
        writable = await file_handle.create_writable()
        await writable.write(text)
        await writable.close()
    except Exception as e:
        log.error(LogEventNames.FILE_WRITE_ERROR, error=str(e))
        raise FileWriteError(f"Failed to write {file_handle.name}: {e}") from e
    log.info(LogEventNames.FILE_WRITTEN, length=len(text))


async def copy_to_clipboard(clipboard: Clipboard, text: str, status: StatusReporter) -> bool:
    """Copy text to the clipboard; a failing clipboard is only logged.

    Returns:
        True when the text was copied
    """
    try:
        await clipboard.write_text(text)
    except Exception as e:
        log.warning(LogEventNames.CLIPBOARD_ERROR, error=str(e))
        status.warning("Could not copy the suggested code to the clipboard.")
        return False
    log.info(LogEventNames.CLIPBOARD_COPIED, length=len(text))
    return True
