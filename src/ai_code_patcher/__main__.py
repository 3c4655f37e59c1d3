"""Entry point for running the AI Code Patcher from a terminal.

This module patches one file with a suggested snippet. It handles:
- Configuration loading
- Logging setup
- Adapter instantiation (local file, clipboard)
- Reading the snippet from a file or stdin
- Mapping the outcome to an exit code
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from ai_code_patcher._version import __version__
from ai_code_patcher.interfaces.clipboard import Clipboard

log = structlog.get_logger()

EXIT_PATCHED = 0
EXIT_NOT_PATCHED = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from ai_code_patcher.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse (defaults to sys.argv[1:])

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="ai-code-patcher",
        description="AI Code Patcher - Weave AI-suggested fixes into JavaScript/TypeScript files",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "file",
        type=Path,
        help="File to patch",
    )

    parser.add_argument(
        "-s",
        "--snippet",
        required=True,
        help="File containing the suggested code, or - to read it from stdin",
    )

    parser.add_argument(
        "-m",
        "--message",
        default="",
        help='Error message (e.g. "ReferenceError: foo is not defined")',
    )

    parser.add_argument(
        "-l",
        "--line",
        type=int,
        default=None,
        help="1-based line of the error",
    )

    parser.add_argument(
        "--column",
        type=int,
        default=None,
        help="Column of the error",
    )

    parser.add_argument(
        "--original-snippet",
        type=Path,
        default=None,
        help="File containing the code the suggestion replaces (used for non-script files)",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (defaults apply when omitted)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default=None,
        help="Log output format (default: console, or the config file setting)",
    )

    parser.add_argument(
        "--clipboard",
        choices=["system", "stdout", "none"],
        default="system",
        help="Where the snippet goes when it cannot be applied (default: system)",
    )

    return parser.parse_args(argv)


def read_snippet(source: str) -> str:
    """Read the snippet from a path, or from stdin when source is "-"."""
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def create_clipboard(kind: str) -> Clipboard:
    """Instantiate the clipboard adapter named on the command line."""
    from ai_code_patcher.adapters import InMemoryClipboard, StdoutClipboard, SystemClipboard

    if kind == "system":
        return SystemClipboard()
    if kind == "stdout":
        return StdoutClipboard()
    return InMemoryClipboard()


def print_status(message: str, level: str) -> None:
    """Status observer that echoes engine messages to stderr."""
    print(f"[{level}] {message}", file=sys.stderr)


async def run_patch(args: argparse.Namespace) -> int:
    """Patch the file named in args.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 patched, 1 not patched, 2 configuration error)
    """
    from ai_code_patcher.config.loader import load_config
    from ai_code_patcher.utils.errors import ConfigurationError

    log.info("starting_ai_code_patcher", version=__version__, file=str(args.file))

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        return EXIT_CONFIG_ERROR
    except (ValueError, ConfigurationError) as e:
        log.error("configuration_invalid", error=str(e))
        return EXIT_CONFIG_ERROR

    # Reconfigure logging from config file settings; -d and --format still win
    from ai_code_patcher.utils.logging import configure_logging

    configure_logging(
        level="DEBUG" if args.debug else config.logging.level,
        log_format=args.format or config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
        file_enabled=config.logging.file.enabled,
    )

    try:
        snippet = read_snippet(args.snippet)
        original_snippet = (
            args.original_snippet.read_text(encoding="utf-8") if args.original_snippet else ""
        )
    except OSError as e:
        log.error("snippet_read_failed", error=str(e))
        return EXIT_NOT_PATCHED

    from ai_code_patcher.adapters import LocalFileHandle
    from ai_code_patcher.core import FixService, PatchEngine
    from ai_code_patcher.models import ErrorInfo

    clipboard = create_clipboard(args.clipboard)
    engine = PatchEngine(config, clipboard=clipboard)
    service = FixService(engine, clipboard)

    error_info = ErrorInfo(
        message=args.message,
        line_number=args.line,
        column_number=args.column,
        file_name=args.file.name,
    )

    patched = await service.apply_fix(
        LocalFileHandle(args.file),
        snippet,
        error_info,
        original_snippet=original_snippet,
        status_callback=print_status,
    )
    return EXIT_PATCHED if patched else EXIT_NOT_PATCHED


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging with CLI options
    setup_logging(
        debug=args.debug,
        log_format=args.format or "console",
    )

    try:
        return asyncio.run(run_patch(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return EXIT_NOT_PATCHED


if __name__ == "__main__":
    sys.exit(main())
