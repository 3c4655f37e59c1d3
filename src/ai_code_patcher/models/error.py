"""Data models describing the reported error and where it sits in the file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from tree_sitter import Node

# Ordered error shapes; the first match names the identifier the fix is about.
ERROR_IDENTIFIER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(?:(?:ReferenceError|TypeError):\s+)?([\w$]+)\s+is not defined",
        r"Cannot read (?:property|properties) '([\w$]+)' of",
        r"Cannot read properties of (?:undefined|null) \(reading '([\w$]+)'\)",
        r"Property '([\w$]+)' does not exist on type",
        r"([\w$]+) is not a function",
        r"Identifier '([\w$]+)' has already been declared",
        r"([\w$]+) is not recognized",
        r"cannot find name '([\w$]+)'",
        r"Class '([\w$]+)' does not implement",
        r"'([\w$]+)'\s+is declared but",
        r"this\.([\w$]+) is undefined",
        r"Property '([\w$]+)' is missing in type",
    )
)

SELF_REFERENCE = re.compile(r"\bthis\.[A-Za-z_$]")


def extract_error_identifier(message: str | None) -> str | None:
    """Return the identifier named by an error message, if any.

    Args:
        message: Raw error message (e.g. "ReferenceError: foo is not defined")

    Returns:
        The identifier from the first matching error shape, or None
    """
    if not message:
        return None
    for pattern in ERROR_IDENTIFIER_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


@dataclass(frozen=True)
class ErrorInfo:
    """Error details as supplied by the caller."""

    message: str = ""
    line_number: int | None = None
    column_number: int | None = None
    file_name: str | None = None
    stack: str | None = None


@dataclass(frozen=True)
class ErrorDescriptor:
    """Normalized view of an ErrorInfo used throughout one patch attempt."""

    message: str = ""
    line_hint: int = 1
    has_line: bool = False
    error_identifier: str | None = None

    @classmethod
    def from_error_info(cls, info: ErrorInfo | None) -> ErrorDescriptor:
        """Build a descriptor, defaulting the line to 1 when absent or invalid."""
        if info is None:
            return cls()
        has_line = info.line_number is not None and info.line_number >= 1
        return cls(
            message=info.message or "",
            line_hint=info.line_number if has_line and info.line_number else 1,
            has_line=has_line,
            error_identifier=extract_error_identifier(info.message),
        )

    @property
    def mentions_self(self) -> bool:
        """True when the message itself names a `this.<identifier>` access."""
        return bool(SELF_REFERENCE.search(self.message))


@dataclass(frozen=True)
class ClassMemberContext:
    """Class-related facts about the error location."""

    in_class: bool = False
    class_name: str | None = None
    in_method: bool = False
    method_name: str | None = None
    is_static: bool = False
    references_self: bool = False


@dataclass(frozen=True)
class ErrorContext:
    """Nodes surrounding the reported error line."""

    enclosing_node: Node | None = None
    enclosing_function: Node | None = None
    enclosing_class: Node | None = None
    class_member: ClassMemberContext = field(default_factory=ClassMemberContext)

    @classmethod
    def empty(cls) -> ErrorContext:
        """Context used when the location is unknown or could not be computed."""
        return cls()
