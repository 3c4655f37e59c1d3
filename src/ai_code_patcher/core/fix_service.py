"""Entry point for applying an AI-suggested fix to a file.

The FixService reads the file through its handle and picks the route:
JavaScript/TypeScript files go through the PatchEngine, every other file
gets a direct text replacement of the original snippet.
"""

from __future__ import annotations

import structlog

from ai_code_patcher.core.engine import PatchEngine, copy_to_clipboard, persist_text
from ai_code_patcher.core.fallback import direct_replacement
from ai_code_patcher.core.source_parser import is_script_file
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.interfaces.clipboard import Clipboard
from ai_code_patcher.interfaces.file_handle import FileHandle
from ai_code_patcher.interfaces.notifier import StatusCallback
from ai_code_patcher.models.error import ErrorInfo
from ai_code_patcher.utils.errors import FileWriteError
from ai_code_patcher.utils.logging import LogEventNames
from ai_code_patcher.utils.text import clean_code_example

log = structlog.get_logger()


class FixService:
    """Apply fixes to files of any type.

    Example:
        service = FixService(engine, clipboard)
        ok = await service.apply_fix(handle, snippet, ErrorInfo("x is not defined", 3))
    """

    def __init__(self, engine: PatchEngine, clipboard: Clipboard) -> None:
        """Initialize the service.

        Args:
            engine: Engine used for JavaScript/TypeScript files
            clipboard: Clipboard receiving the snippet when a fix fails
        """
        self._engine = engine
        self._clipboard = clipboard

    async def apply_fix(
        self,
        file_handle: FileHandle,
        new_snippet: str,
        error_info: ErrorInfo | None = None,
        original_snippet: str = "",
        status_callback: StatusCallback | None = None,
    ) -> bool:
        """Apply a suggested snippet to the file behind file_handle.

        Args:
            file_handle: File to patch
            new_snippet: Suggested code, possibly fenced or line-numbered
            error_info: Error message and location, if known
            original_snippet: Code the suggestion replaces (used for non-script files)
            status_callback: Observer for progress messages

        Returns:
            True when the file was written, False otherwise
        """
        status = StatusReporter(status_callback)
        cleaned = clean_code_example(new_snippet)

        try:
            text = await file_handle.read_text()
        except (OSError, UnicodeDecodeError) as e:
            log.error(LogEventNames.PATCH_FAILED, file_name=file_handle.name, error=str(e))
            status.error(f"Could not read {file_handle.name}: {e}")
            await copy_to_clipboard(self._clipboard, cleaned, status)
            return False

        if is_script_file(file_handle.name):
            return await self._engine.process_code_fix(
                file_handle,
                text,
                original_snippet,
                new_snippet,
                error_info,
                status_callback,
            )
        return await self._replace_directly(file_handle, text, original_snippet, cleaned, status)

    async def _replace_directly(
        self,
        file_handle: FileHandle,
        text: str,
        original_snippet: str,
        new_snippet: str,
        status: StatusReporter,
    ) -> bool:
        """Swap the first occurrence of the original snippet for the new one."""
        updated = direct_replacement(text, clean_code_example(original_snippet), new_snippet)
        if updated is None:
            status.warning(
                "Could not locate the original code in the file; copied the fix to the clipboard."
            )
            await copy_to_clipboard(self._clipboard, new_snippet, status)
            log.info(LogEventNames.PATCH_NOOP, file_name=file_handle.name, route="direct")
            return False

        try:
            await persist_text(file_handle, updated)
        except FileWriteError as e:
            status.error(f"Error writing file: {e}")
            await copy_to_clipboard(self._clipboard, new_snippet, status)
            return False

        status.success(f"Applied fix to {file_handle.name}.")
        log.info(LogEventNames.PATCH_APPLIED, file_name=file_handle.name, route="direct")
        return True
