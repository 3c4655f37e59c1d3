"""Plain-text helpers shared by the parser-driven and text-driven patchers.

- Cleaning AI-produced code examples (fences, line-number gutters)
- Brace scanning that understands strings, template literals and comments
- Line/offset arithmetic and re-indentation
"""

from __future__ import annotations

import re
import textwrap
from collections.abc import Iterator

FENCE_START = re.compile(r"^```[\w+#.-]*[ \t]*\n?")
FENCE_END = re.compile(r"\n?```$")
LINE_NUMBER_PREFIX = re.compile(r"^[ \t]*\d+[ \t]*[:.|][ \t]?")

QUOTES = "'\"`"


def clean_code_example(code: str) -> str:
    """Strip markdown fences and line-number gutters from a code example.

    Args:
        code: Snippet as returned by the AI service

    Returns:
        The bare code, trimmed
    """
    if not code:
        return ""
    cleaned = FENCE_START.sub("", code.strip())
    cleaned = FENCE_END.sub("", cleaned)
    lines = cleaned.split("\n")
    # A gutter is only stripped when every non-blank line carries one
    if all(LINE_NUMBER_PREFIX.match(line) for line in lines if line.strip()):
        lines = [LINE_NUMBER_PREFIX.sub("", line, count=1) for line in lines]
    return "\n".join(lines).strip()


class BraceScanner:
    """Incremental `{}` depth tracker aware of quotes and `//` comments.

    State is carried across calls so multi-line template literals keep their
    quote context from one line to the next.
    """

    def __init__(self) -> None:
        self.depth = 0
        self.quote: str | None = None
        self._in_block_comment = False

    def feed(self, text: str) -> int:
        """Consume text and return the resulting depth."""
        for _ in self.braces(text):
            pass
        return self.depth

    def braces(self, text: str) -> Iterator[tuple[int, str]]:
        """Consume text, yielding (index, brace) for every structural brace.

        Depth is updated before each yield.
        """
        i = 0
        length = len(text)
        while i < length:
            ch = text[i]
            if self._in_block_comment:
                if text.startswith("*/", i):
                    self._in_block_comment = False
                    i += 1
            elif self.quote is not None:
                if ch == "\\":
                    i += 1
                elif ch == self.quote:
                    self.quote = None
                elif ch == "\n" and self.quote != "`":
                    # Plain quotes never span lines; only template literals do.
                    self.quote = None
            elif ch in QUOTES:
                self.quote = ch
            elif text.startswith("//", i):
                newline = text.find("\n", i)
                if newline == -1:
                    break
                i = newline
                continue
            elif text.startswith("/*", i):
                self._in_block_comment = True
                i += 1
            elif ch == "{":
                self.depth += 1
                yield i, ch
            elif ch == "}":
                self.depth -= 1
                yield i, ch
            i += 1


def find_matching_brace(text: str, open_index: int) -> int:
    """Return the index of the `}` closing the `{` at open_index, or -1."""
    scanner = BraceScanner()
    for index, brace in scanner.braces(text[open_index:]):
        if brace == "}" and scanner.depth == 0:
            return open_index + index
    return -1


def leading_whitespace(line: str) -> str:
    """Return the indentation prefix of a line."""
    return line[: len(line) - len(line.lstrip(" \t"))]


def dedent_continuation(text: str, column: int) -> str:
    """Remove up to `column` leading blanks from every line but the first.

    Node text sliced out of a file starts at its column but continuation
    lines still carry the file's absolute indentation.
    """
    lines = text.split("\n")
    result = [lines[0]]
    for line in lines[1:]:
        strip = min(column, len(leading_whitespace(line)))
        result.append(line[strip:])
    return "\n".join(result)


def reindent(text: str, indent: str) -> str:
    """Indent every non-blank line of text with indent."""
    return textwrap.indent(text, indent, lambda line: bool(line.strip()))
