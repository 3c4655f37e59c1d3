"""Tests for the file and clipboard adapters."""

import io
import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ai_code_patcher.adapters import (
    InMemoryClipboard,
    InMemoryFileHandle,
    LocalFileHandle,
    StdoutClipboard,
    SystemClipboard,
)
from ai_code_patcher.adapters.clipboard.system import find_clipboard_command
from ai_code_patcher.utils.errors import ClipboardError


class TestLocalFileHandle:
    """Tests for LocalFileHandle."""

    @pytest.mark.asyncio
    async def test_read_keeps_line_endings(self, tmp_path: Path) -> None:
        """Test that CRLF line endings survive reading."""
        path = tmp_path / "app.js"
        path.write_bytes(b"const a = 1;\r\nconst b = 2;\r\n")
        handle = LocalFileHandle(path)

        assert handle.name == "app.js"
        assert await handle.read_text() == "const a = 1;\r\nconst b = 2;\r\n"

    @pytest.mark.asyncio
    async def test_write_replaces_content(self, tmp_path: Path) -> None:
        """Test that writes are committed on close."""
        path = tmp_path / "app.js"
        path.write_text("old\n")
        handle = LocalFileHandle(str(path))

        writable = await handle.create_writable()
        await writable.write("new ")
        await writable.write("content\n")
        assert path.read_text() == "old\n"
        await writable.close()

        assert path.read_text() == "new content\n"
        assert [p.name for p in tmp_path.iterdir()] == ["app.js"]

    @pytest.mark.asyncio
    async def test_write_keeps_file_mode(self, tmp_path: Path) -> None:
        """Test that the original permissions are preserved."""
        path = tmp_path / "run.js"
        path.write_text("old\n")
        os.chmod(path, 0o640)

        writable = await LocalFileHandle(path).create_writable()
        await writable.write("new\n")
        await writable.close()

        assert path.stat().st_mode & 0o777 == 0o640

    @pytest.mark.asyncio
    async def test_write_after_close_fails(self, tmp_path: Path) -> None:
        """Test that a closed stream rejects writes."""
        writable = await LocalFileHandle(tmp_path / "a.js").create_writable()
        await writable.close()
        with pytest.raises(ValueError):
            await writable.write("x")

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path: Path) -> None:
        """Test that a handle in a missing directory cannot be written."""
        handle = LocalFileHandle(tmp_path / "missing" / "a.js")
        with pytest.raises(FileNotFoundError):
            await handle.create_writable()

    @pytest.mark.asyncio
    async def test_missing_file_read(self, tmp_path: Path) -> None:
        """Test that reading a missing file raises OSError."""
        with pytest.raises(OSError):
            await LocalFileHandle(tmp_path / "none.js").read_text()


class TestInMemoryAdapters:
    """Tests for the in-memory adapters."""

    @pytest.mark.asyncio
    async def test_file_handle(self) -> None:
        """Test read and write of the in-memory handle."""
        handle = InMemoryFileHandle("a.js", "x")
        assert await handle.read_text() == "x"
        writable = await handle.create_writable()
        await writable.write("y")
        await writable.close()
        assert handle.content == "y"
        assert handle.writes == 1

    @pytest.mark.asyncio
    async def test_clipboard_history(self) -> None:
        """Test that the in-memory clipboard keeps history."""
        clipboard = InMemoryClipboard()
        assert clipboard.text is None
        await clipboard.write_text("a")
        await clipboard.write_text("b")
        assert clipboard.history == ["a", "b"]
        assert clipboard.text == "b"

    @pytest.mark.asyncio
    async def test_stdout_clipboard(self) -> None:
        """Test that the stdout clipboard prints with a trailing newline."""
        stream = io.StringIO()
        await StdoutClipboard(stream).write_text("const a = 1;")
        assert stream.getvalue() == "const a = 1;\n"


class TestSystemClipboard:
    """Tests for SystemClipboard."""

    def test_find_command(self) -> None:
        """Test detection of the first available tool."""
        with patch("ai_code_patcher.adapters.clipboard.system.shutil.which") as which:
            which.side_effect = lambda name: "/usr/bin/xclip" if name == "xclip" else None
            assert find_clipboard_command() == ["/usr/bin/xclip", "-selection", "clipboard"]

    def test_no_command(self) -> None:
        """Test that None is returned when no tool exists."""
        with patch("ai_code_patcher.adapters.clipboard.system.shutil.which", return_value=None):
            assert find_clipboard_command() is None

    @pytest.mark.asyncio
    async def test_write_text_runs_command(self) -> None:
        """Test that the text is piped into the command without a shell."""
        completed = MagicMock(returncode=0, stderr="")
        with patch(
            "ai_code_patcher.adapters.clipboard.system.subprocess.run", return_value=completed
        ) as run:
            await SystemClipboard(command=["pbcopy"]).write_text("hello")

        args, kwargs = run.call_args
        assert args[0] == ["pbcopy"]
        assert kwargs["input"] == "hello"
        assert kwargs["shell"] is False
        assert kwargs["timeout"] == SystemClipboard.DEFAULT_TIMEOUT

    @pytest.mark.asyncio
    async def test_missing_tool(self) -> None:
        """Test that a missing tool raises ClipboardError."""
        with patch("ai_code_patcher.adapters.clipboard.system.shutil.which", return_value=None):
            with pytest.raises(ClipboardError, match="No clipboard tool"):
                await SystemClipboard().write_text("x")

    @pytest.mark.asyncio
    async def test_nonzero_exit(self) -> None:
        """Test that a failing command raises ClipboardError."""
        completed = MagicMock(returncode=1, stderr="cannot open display")
        with patch(
            "ai_code_patcher.adapters.clipboard.system.subprocess.run", return_value=completed
        ):
            with pytest.raises(ClipboardError, match="cannot open display"):
                await SystemClipboard(command=["xclip"]).write_text("x")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test that a hanging command raises ClipboardError."""
        with patch(
            "ai_code_patcher.adapters.clipboard.system.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="xclip", timeout=1),
        ):
            with pytest.raises(ClipboardError, match="timed out"):
                await SystemClipboard(command=["xclip"], timeout=1).write_text("x")

    @pytest.mark.asyncio
    async def test_start_failure(self) -> None:
        """Test that a command that cannot start raises ClipboardError."""
        with patch(
            "ai_code_patcher.adapters.clipboard.system.subprocess.run",
            side_effect=FileNotFoundError("no such file"),
        ):
            with pytest.raises(ClipboardError, match="failed to start"):
                await SystemClipboard(command=["missing-tool"]).write_text("x")
