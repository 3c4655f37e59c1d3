"""Operating-system clipboard via the platform's command-line tools.

The first available tool is used:
- macOS: pbcopy
- Wayland: wl-copy
- X11: xclip, then xsel
- Windows: clip

Commands are always run from an argument list (never shell=True) and
with a timeout.
"""

from __future__ import annotations

import asyncio
import shutil
import subprocess

import structlog

from ai_code_patcher.utils.errors import ClipboardError

log = structlog.get_logger()

CLIPBOARD_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
    ("clip",),
)


def find_clipboard_command() -> list[str] | None:
    """Return the first clipboard command found on PATH, or None."""
    for command in CLIPBOARD_COMMANDS:
        path = shutil.which(command[0])
        if path:
            return [path, *command[1:]]
    return None


class SystemClipboard:
    """Clipboard adapter that pipes text into a clipboard tool.

    Example:
        clipboard = SystemClipboard()
        await clipboard.write_text("const a = 1;")
    """

    # Default timeout for clipboard commands (seconds)
    DEFAULT_TIMEOUT = 5

    def __init__(
        self,
        command: list[str] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the clipboard.

        Args:
            command: Clipboard command; detected from PATH if None.
            timeout: Timeout for the command in seconds.
        """
        self._command = command
        self._timeout = timeout

    async def write_text(self, text: str) -> None:
        """Copy text to the system clipboard.

        Raises:
            ClipboardError: If no tool is available, it fails or times out
        """
        cmd = self._command or find_clipboard_command()
        if not cmd:
            raise ClipboardError("No clipboard tool found (pbcopy, wl-copy, xclip, xsel, clip)")

        log.debug("executing_clipboard_command", command=cmd, timeout=self._timeout)

        def run_sync() -> subprocess.CompletedProcess[str]:
            return subprocess.run(
                cmd,
                input=text,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                shell=False,
            )

        try:
            proc = await asyncio.wait_for(
                asyncio.to_thread(run_sync),
                timeout=self._timeout + 5,
            )
        except (subprocess.TimeoutExpired, TimeoutError) as e:
            log.error("clipboard_command_timeout", command=cmd, timeout=self._timeout)
            raise ClipboardError(f"Clipboard command timed out after {self._timeout}s") from e
        except OSError as e:
            raise ClipboardError(f"Clipboard command failed to start: {e}") from e

        if proc.returncode != 0:
            raise ClipboardError(f"Clipboard command failed: {proc.stderr.strip() or proc.returncode}")
