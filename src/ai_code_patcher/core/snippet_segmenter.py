"""Segmentation of free-form AI snippets into candidate declarations.

Snippets arrive as anything from a full module to a lone method or a few
unrelated lines. The SnippetSegmenter tries progressively looser parse
modes and stops at the first that yields a clean tree:

1. whole program
2. single parenthesized expression
3. members of a synthetic class (only when the text looks like one)
4. line scanning with brace tracking, parsing each balanced slice with 1-3
"""

from __future__ import annotations

import re
from collections.abc import Callable

import structlog
from tree_sitter import Node

from ai_code_patcher.config.schema import SegmenterConfig
from ai_code_patcher.core.declarations import make_candidate
from ai_code_patcher.core.source_parser import parse_tree
from ai_code_patcher.core.syntax import (
    MEMBER_TYPES,
    class_body,
    has_syntax_errors,
    statements,
)
from ai_code_patcher.models.patch import CandidateDeclaration
from ai_code_patcher.utils.logging import LogEventNames
from ai_code_patcher.utils.text import BraceScanner

log = structlog.get_logger()

SYNTHETIC_CLASS_NAME = "__PatchSnippet"

_NOT_MEMBER_NAMES = (
    r"(?!(?:if|for|while|switch|catch|function|return|with|do|else|new|typeof|await|"
    r"const|let|var|class|import|export)\b)"
)
MEMBER_METHOD_SHAPE = re.compile(
    r"^\s*(?:static\s+)?(?:async\s+)?(?:get\s+|set\s+)?\*?"
    + _NOT_MEMBER_NAMES
    + r"[a-zA-Z_$][\w$]*\s*\([^)]*\)\s*(?::\s*[^{]+)?{"
)
MEMBER_PROPERTY_SHAPE = re.compile(
    r"^\s*(?:static\s+)?" + _NOT_MEMBER_NAMES + r"[a-zA-Z_$][\w$]*\s*=\s*[^;]+;"
)
MEMBER_TYPED_PROPERTY_SHAPE = re.compile(
    r"^\s*(?:static\s+)?(?:readonly\s+)?" + _NOT_MEMBER_NAMES + r"[a-zA-Z_$][\w$]*\??\s*:\s*[^;]+;"
)
MEMBER_FIELD_SHAPE = re.compile(r"^\s*(?:static\s+)?" + _NOT_MEMBER_NAMES + r"[a-zA-Z_$][\w$]*\s*;")

DECLARATION_START = re.compile(
    r"^\s*(?:export\s|(?:const|let|var)\s|(?:async\s+)?function[\s*(]|"
    r"(?:abstract\s+)?class\s+[\w$]|interface\s+[\w$]|type\s+[\w$]|enum\s+[\w$])"
)
MEMBER_START = re.compile(
    r"^\s*(?:static\s+)?(?:async\s+)?(?:get\s+|set\s+)?\*?"
    + _NOT_MEMBER_NAMES
    + r"[a-zA-Z_$][\w$]*\s*(?:\(|:|=|;)"
)


def looks_like_class_member(text: str) -> bool:
    """True when text starts like a class method, property or field."""
    return any(
        pattern.match(text)
        for pattern in (
            MEMBER_METHOD_SHAPE,
            MEMBER_PROPERTY_SHAPE,
            MEMBER_TYPED_PROPERTY_SHAPE,
            MEMBER_FIELD_SHAPE,
        )
    )


def parse_members(text: str, dialect: str) -> list[Node] | None:
    """Parse text as the body of a synthetic class.

    Returns:
        The member nodes, or None when the text is not a clean class body
        made only of methods and fields
    """
    wrapped = f"class {SYNTHETIC_CLASS_NAME} {{\n{text}\n}}"
    root = parse_tree(wrapped, dialect).root_node
    if has_syntax_errors(root):
        return None
    top = statements(root)
    if len(top) != 1 or top[0].type != "class_declaration":
        return None
    body = class_body(top[0])
    if body is None:
        return None
    members: list[Node] = []
    for child in body.named_children:
        if child.type == "comment":
            continue
        if child.type not in MEMBER_TYPES:
            return None
        members.append(child)
    return members or None


class SnippetSegmenter:
    """Split a snippet into candidate declarations.

    Example:
        segmenter = SnippetSegmenter()
        candidates = segmenter.segment("function a() {}\\nconst b = 1;", "javascript")
        assert [c.canonical_name for c in candidates] == ["a", "b"]
    """

    def __init__(self, config: SegmenterConfig | None = None) -> None:
        """Initialize the segmenter.

        Args:
            config: Segmenter configuration (defaults apply when None)
        """
        self._config = config or SegmenterConfig()

    def segment(self, fragment: str, dialect: str) -> list[CandidateDeclaration]:
        """Return the candidates of a fragment; empty when nothing parses.

        Args:
            fragment: Snippet text, already cleaned of fences
            dialect: Grammar of the file being patched

        Returns:
            Candidates in snippet order
        """
        if not fragment.strip():
            return []

        candidates = self._parse_whole(fragment, dialect)
        mode = "program"
        if candidates is None:
            candidates = self._scan_lines(fragment, dialect)
            mode = "line_scan"

        if candidates:
            log.debug(
                LogEventNames.SNIPPET_SEGMENTED,
                mode=mode,
                count=len(candidates),
                names=[c.canonical_name for c in candidates],
            )
        else:
            log.info(LogEventNames.SNIPPET_UNPARSEABLE, snippet=fragment)
        return candidates

    def _parse_whole(self, text: str, dialect: str) -> list[CandidateDeclaration] | None:
        """Try the program, expression and synthetic-class modes in order."""
        modes: list[Callable[[str, str], list[CandidateDeclaration] | None]] = [
            self._parse_program,
            self._parse_expression,
            self._parse_class_members,
        ]
        for mode in modes:
            candidates = mode(text, dialect)
            if candidates:
                return candidates
        return None

    def _parse_program(self, text: str, dialect: str) -> list[CandidateDeclaration] | None:
        root = parse_tree(text, dialect).root_node
        if has_syntax_errors(root):
            return None
        return [make_candidate(node) for node in statements(root)] or None

    def _parse_expression(self, text: str, dialect: str) -> list[CandidateDeclaration] | None:
        root = parse_tree(f"(\n{text}\n);", dialect).root_node
        if has_syntax_errors(root):
            return None
        found = statements(root)
        if len(found) != 1 or found[0].type != "expression_statement":
            return None
        return [make_candidate(found[0])]

    def _parse_class_members(
        self, text: str, dialect: str
    ) -> list[CandidateDeclaration] | None:
        if not looks_like_class_member(text):
            return None
        members = parse_members(text, dialect)
        if members is None:
            return None
        return [make_candidate(node) for node in members]

    def _scan_lines(self, fragment: str, dialect: str) -> list[CandidateDeclaration]:
        """Accumulate lines into balanced slices and parse each one."""
        member_mode = looks_like_class_member(fragment)
        max_attempts = self._config.max_slice_attempts
        candidates: list[CandidateDeclaration] = []
        scanner = BraceScanner()
        pending: list[str] = []
        attempts = 0

        def starts_declaration(text: str) -> bool:
            if DECLARATION_START.match(text):
                return True
            return member_mode and bool(MEMBER_START.match(text))

        def flush(force: bool) -> bool:
            nonlocal pending, attempts
            slice_text = "\n".join(pending)
            parsed = self._parse_whole(slice_text, dialect) if slice_text.strip() else None
            if parsed:
                candidates.extend(parsed)
            elif not force:
                attempts += 1
                if attempts < max_attempts:
                    return False
                log.debug(
                    LogEventNames.SNIPPET_SLICE_DISCARDED, slice=slice_text, attempts=attempts
                )
            pending = []
            attempts = 0
            scanner.depth = 0
            return True

        for line in fragment.split("\n"):
            at_boundary = scanner.depth <= 0 and scanner.quote is None
            if at_boundary and pending and starts_declaration(line):
                if not starts_declaration(pending[0]):
                    flush(force=True)
            pending.append(line)
            scanner.feed(line + "\n")
            if scanner.depth <= 0 and scanner.quote is None and starts_declaration(pending[0]):
                flush(force=False)

        if any(line.strip() for line in pending):
            flush(force=True)
        return candidates
