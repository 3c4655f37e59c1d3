"""Text-level fallback strategies.

These run when syntax-tree patching produced nothing. They work on the
raw file text with brace and string aware scanning instead of a tree, so
they also cope with snippets the segmenter could not split:

- ClassMemberTextFix: append a member-shaped snippet to the error's class
- CustomFix: initialize `this.<name>` in the constructor, or lift the
  missing declaration out of the snippet
- FallbackFix: last resort; extracted declaration or a synthesized stub,
  placed before trailing exports

Each strategy needs the identifier named by the error and leaves the file
alone when that identifier is already declared.
"""

from __future__ import annotations

import re
import textwrap

import structlog

from ai_code_patcher.config.schema import FallbackConfig, FormattingConfig
from ai_code_patcher.core.snippet_segmenter import looks_like_class_member
from ai_code_patcher.core.strategy import PatchAttempt
from ai_code_patcher.models.patch import Applied, NoOp, StrategyResult
from ai_code_patcher.utils.logging import LogEventNames
from ai_code_patcher.utils.text import (
    BraceScanner,
    find_matching_brace,
    leading_whitespace,
    reindent,
)

log = structlog.get_logger()

_MEMBER_NAME = re.compile(
    r"^\s*(?:static\s+)?(?:readonly\s+)?(?:async\s+)?(?:get\s+|set\s+)?\*?([a-zA-Z_$][\w$]*)"
)
_CONTINUATION = re.compile(r"^\s*(?:[.?:+\-*/|&,]|=>)")
_TOP_LEVEL_DECLARATION = re.compile(
    r"^(?:export\s|(?:const|let|var)\s|(?:async\s+)?function[\s*]|class\s)"
)
_VARIABLE_START = re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s")


def _declaration_pattern(name: str) -> re.Pattern[str]:
    escaped = re.escape(name)
    return re.compile(
        r"^\s*(?:export\s+(?:default\s+)?)?(?:"
        rf"(?:const|let|var)\s+{escaped}(?![\w$])|"
        rf"(?:async\s+)?function\s*\*?\s*{escaped}(?![\w$])|"
        rf"(?:abstract\s+)?class\s+{escaped}(?![\w$]))"
    )


def _member_pattern(name: str) -> re.Pattern[str]:
    return re.compile(
        r"(?m)^\s*(?:static\s+)?(?:readonly\s+)?(?:async\s+)?(?:get\s+|set\s+)?\*?"
        rf"{re.escape(name)}\s*[(=:;?!]"
    )


def is_declared(text: str, name: str) -> bool:
    """True when a line of text declares name as a variable, function or class."""
    pattern = _declaration_pattern(name)
    return any(pattern.match(line) for line in text.split("\n"))


def extract_declaration(snippet: str, name: str) -> str | None:
    """Lift the declaration of name out of a snippet.

    The declaration starts at the first line that declares name and ends
    where its braces balance again (or at the end of a brace-less
    statement). Quotes, template literals and comments are skipped while
    counting.

    Returns:
        The dedented declaration, or None when name is not declared or
        its braces never balance
    """
    lines = snippet.split("\n")
    pattern = _declaration_pattern(name)
    for start, line in enumerate(lines):
        if not pattern.match(line):
            continue
        scanner = BraceScanner()
        opened = False
        for end in range(start, len(lines)):
            for _, brace in scanner.braces(lines[end] + "\n"):
                opened = opened or brace == "{"
            if scanner.depth > 0 or scanner.quote is not None:
                continue
            is_last = end == len(lines) - 1
            complete = (
                opened
                or lines[end].rstrip().endswith(";")
                or is_last
                or not _CONTINUATION.match(lines[end + 1])
            )
            if complete:
                declaration = textwrap.dedent("\n".join(lines[start : end + 1])).strip()
                if not declaration.endswith((";", "}")):
                    declaration += ";"
                return declaration
        return None
    return None


def find_class_body(text: str, class_name: str) -> tuple[int, int] | None:
    """Return the offsets of the `{` and `}` of a class body, or None."""
    pattern = re.compile(rf"\bclass\s+{re.escape(class_name)}(?![\w$])[^{{]*\{{")
    match = pattern.search(text)
    if match is None:
        return None
    open_index = match.end() - 1
    close_index = find_matching_brace(text, open_index)
    if close_index == -1:
        return None
    return open_index, close_index


def _line_start(text: str, index: int) -> int:
    return text.rfind("\n", 0, index) + 1


def _first_on_line(text: str, index: int) -> bool:
    return not text[_line_start(text, index) : index].strip()


def insert_before_brace(text: str, close_index: int, block: str, indent: str) -> str:
    """Insert an indented block just before the `}` at close_index."""
    indented = reindent(block, indent)
    if _first_on_line(text, close_index):
        position = _line_start(text, close_index)
        return text[:position] + indented + "\n" + text[position:]
    closing_indent = leading_whitespace(text[_line_start(text, close_index) :])
    return text[:close_index] + "\n" + indented + "\n" + closing_indent + text[close_index:]


def insert_lines(text: str, index: int, block: str) -> str:
    """Insert block as whole lines before line `index`, padded with blank lines."""
    lines = text.split("\n")
    index = max(0, min(index, len(lines)))
    new_lines = block.split("\n")
    if index > 0 and lines[index - 1].strip():
        new_lines.insert(0, "")
    if index < len(lines) and lines[index].strip():
        new_lines.append("")
    return "\n".join(lines[:index] + new_lines + lines[index:])


def _member_indent(text: str, open_index: int, close_index: int, unit: str) -> str:
    body = text[open_index + 1 : close_index]
    for line in body.split("\n")[1:]:
        if line.strip():
            return leading_whitespace(line)
    return leading_whitespace(text[_line_start(text, open_index) :]) + unit


class ClassMemberTextFix:
    """Append a member-shaped snippet to the class containing the error."""

    name = "class_member_text"

    def __init__(self, formatting: FormattingConfig | None = None) -> None:
        self._formatting = formatting or FormattingConfig()

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        info = attempt.context.class_member
        if not info.in_class or not info.class_name:
            return NoOp("error is not inside a class")
        snippet = textwrap.dedent(attempt.snippet).strip()
        if not snippet or not looks_like_class_member(snippet):
            return NoOp("snippet does not look like a class member")

        text = attempt.original_text
        body = find_class_body(text, info.class_name)
        if body is None:
            attempt.status.warning(f'Could not find class "{info.class_name}" in the file.')
            return NoOp("class not found")
        open_index, close_index = body

        match = _MEMBER_NAME.match(snippet)
        member = match.group(1) if match else None
        if member and _member_pattern(member).search(text[open_index + 1 : close_index]):
            return NoOp(f"class already has {member}")

        if not snippet.endswith((";", "}")):
            snippet += ";"
        indent = _member_indent(text, open_index, close_index, self._formatting.indent)
        if text[open_index + 1 : close_index].strip():
            snippet = "\n" + snippet
        attempt.status.info(f'Adding class member to "{info.class_name}"...')
        new_text = insert_before_brace(text, close_index, snippet, indent)
        return Applied(
            text=new_text,
            summary=f'Added {"static " if info.is_static else ""}member to class "{info.class_name}".',
            additions=1,
        )


class CustomFix:
    """Targeted text fixes keyed on the error identifier."""

    name = "custom"

    def __init__(self, formatting: FormattingConfig | None = None) -> None:
        self._formatting = formatting or FormattingConfig()

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        identifier = attempt.descriptor.error_identifier
        if not identifier:
            return NoOp("error names no identifier")
        attempt.status.info(f'Attempting custom fix for "{identifier}"...')

        info = attempt.context.class_member
        if info.in_class and info.references_self and info.class_name:
            result = self._initialize_in_constructor(attempt, identifier, info.class_name)
            if result is not None:
                return result

        text = attempt.original_text
        if is_declared(text, identifier):
            return NoOp(f"{identifier} is already declared")
        declaration = extract_declaration(attempt.snippet, identifier)
        if declaration is None:
            attempt.status.warning(f'No suitable pattern found for custom fix of "{identifier}".')
            return NoOp("snippet does not declare the identifier")

        first_line = declaration.split("\n", 1)[0]
        is_value = bool(_VARIABLE_START.match(first_line)) and not (
            "=>" in first_line or "function" in first_line
        )
        if is_value and attempt.descriptor.has_line:
            new_text = self._insert_near_error(text, attempt.descriptor.line_hint, declaration)
        else:
            new_text = insert_lines(text, _after_last_declaration(text), declaration)
        return Applied(
            text=new_text,
            summary=f'Custom fix applied for "{identifier}".',
            additions=1,
        )

    def _initialize_in_constructor(
        self, attempt: PatchAttempt, identifier: str, class_name: str
    ) -> StrategyResult | None:
        """Add `this.<identifier> = ...;` at the end of the constructor."""
        text = attempt.original_text
        body = find_class_body(text, class_name)
        if body is None:
            return None
        open_index, close_index = body
        constructor = re.compile(r"(?m)^\s*constructor\s*\(").search(text, open_index, close_index)
        if constructor is None:
            attempt.status.warning(f'No constructor found in class "{class_name}".')
            return None
        brace = _body_brace_after_params(text, constructor.end() - 1)
        if brace == -1:
            return None
        end = find_matching_brace(text, brace)
        if end == -1:
            return None

        assignment = re.compile(rf"\bthis\.{re.escape(identifier)}\s*=[^=]")
        if assignment.search(text, brace, end):
            return NoOp(f"constructor already initializes {identifier}")

        value_match = re.search(
            rf"\bthis\.{re.escape(identifier)}\s*=\s*([^;\n]+)", attempt.snippet
        )
        value = value_match.group(1).strip() if value_match else "undefined"
        statement = f"this.{identifier} = {value};"
        indent = _member_indent(text, brace, end, self._formatting.indent)
        attempt.status.info(f'Adding property "{identifier}" to the constructor...')
        return Applied(
            text=insert_before_brace(text, end, statement, indent),
            summary=f'Added "{identifier}" property initialization to constructor.',
            additions=1,
        )

    def _insert_near_error(self, text: str, line_hint: int, declaration: str) -> str:
        """Insert before the error line, after the closest blank or `}` line."""
        lines = text.split("\n")
        hint = min(max(line_hint - 1, 0), len(lines) - 1)
        spot = hint
        for index in range(hint, -1, -1):
            stripped = lines[index].strip()
            if not stripped or stripped.endswith("}"):
                spot = index + 1
                break
        indent = leading_whitespace(lines[min(spot, len(lines) - 1)])
        block = reindent(declaration, indent)
        return "\n".join(lines[:spot] + block.split("\n") + lines[spot:])


class FallbackFix:
    """Last-resort fix: extracted declaration, class stub or synthesized stub."""

    name = "fallback"

    def __init__(
        self,
        config: FallbackConfig | None = None,
        formatting: FormattingConfig | None = None,
    ) -> None:
        self._config = config or FallbackConfig()
        self._formatting = formatting or FormattingConfig()

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        identifier = attempt.descriptor.error_identifier
        if not identifier:
            return NoOp("error names no identifier")
        text = attempt.original_text
        info = attempt.context.class_member
        attempt.status.info(f'Applying fallback fix for "{identifier}"...')

        if info.in_class and info.references_self and info.class_name:
            body = find_class_body(text, info.class_name)
            if body is not None:
                open_index, close_index = body
                if _member_pattern(identifier).search(text[open_index + 1 : close_index]):
                    return NoOp(f"class already has {identifier}")
                stub = f"{'static ' if info.is_static else ''}{identifier} = undefined;"
                indent = _member_indent(text, open_index, close_index, self._formatting.indent)
                return Applied(
                    text=insert_before_brace(text, close_index, stub, indent),
                    summary=f'Added fallback property "{identifier}" to class "{info.class_name}".',
                    additions=1,
                )

        if is_declared(text, identifier):
            return NoOp(f"{identifier} is already declared")

        declaration = extract_declaration(attempt.snippet, identifier)
        synthesized = declaration is None
        if declaration is None:
            if not self._config.synthesize_stub:
                return NoOp("snippet does not declare the identifier")
            declaration = synthesize_stub(identifier, self._formatting.indent)
            log.info(LogEventNames.STUB_SYNTHESIZED, identifier=identifier)

        new_text = insert_lines(text, _before_trailing_exports(text), declaration)
        return Applied(
            text=new_text,
            summary=f'Fallback fix applied for "{identifier}".',
            additions=1,
            keep_snippet_on_clipboard=synthesized,
        )


def synthesize_stub(identifier: str, indent: str = "  ") -> str:
    """Minimal callable declaration for an identifier nothing else defines."""
    return f"// Define the {identifier}\nconst {identifier} = () => {{\n{indent}return undefined;\n}};"


def _body_brace_after_params(text: str, open_paren: int) -> int:
    """Return the `{` opening the body after the parameter list at open_paren."""
    depth = 0
    for index in range(open_paren, len(text)):
        char = text[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                brace = text.find("{", index)
                return brace
    return -1


def _after_last_declaration(text: str) -> int:
    """Line index just after the last complete top-level declaration."""
    lines = text.split("\n")
    for start in range(len(lines) - 1, -1, -1):
        if not _TOP_LEVEL_DECLARATION.match(lines[start]):
            continue
        scanner = BraceScanner()
        opened = False
        for end in range(start, len(lines)):
            for _, brace in scanner.braces(lines[end] + "\n"):
                opened = opened or brace == "{"
            if scanner.depth <= 0 and scanner.quote is None and (
                opened or lines[end].rstrip().endswith(";")
            ):
                return end + 1
    return len(lines)


def _before_trailing_exports(text: str) -> int:
    """Line index of the last top-level `export ` line, or the end of the text."""
    lines = text.split("\n")
    for index in range(len(lines) - 1, -1, -1):
        if lines[index].startswith("export "):
            return index
    if lines and not lines[-1].strip():
        return len(lines) - 1
    return len(lines)


def direct_replacement(text: str, original_snippet: str, new_snippet: str) -> str | None:
    """Replace the first occurrence of original_snippet with new_snippet.

    Used for files no grammar covers (HTML, CSS, ...).

    Returns:
        The new text, or None when the original snippet is empty, missing
        from text, or the replacement changes nothing
    """
    if not original_snippet.strip() or original_snippet not in text:
        return None
    replaced = text.replace(original_snippet, new_snippet, 1)
    if replaced == text:
        return None
    return replaced
