"""Data models for candidate declarations, patch plans and strategy results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from tree_sitter import Node


class DeclarationKind(StrEnum):
    """Shape of a top-level candidate taken from a snippet."""

    FUNCTION = "function"
    VARIABLE = "variable"
    CLASS = "class"
    EXPORT = "export"
    CLASS_METHOD = "class-method"
    CLASS_PROPERTY = "class-property"
    OTHER = "other"


class MemberRole(StrEnum):
    """Placement bucket of a class member."""

    CONSTRUCTOR = "constructor"
    PROPERTY = "property"
    METHOD = "method"


@dataclass(frozen=True)
class CandidateDeclaration:
    """One self-contained piece of a snippet.

    Attributes:
        node: Syntax node inside the snippet's own tree
        kind: Declaration shape
        canonical_name: Name used for duplicate detection, if the shape has one
        text: Node text with continuation lines relative to the node's column
    """

    node: Node
    kind: DeclarationKind
    canonical_name: str | None
    text: str

    @property
    def is_member(self) -> bool:
        """True for candidates parsed out of a synthetic class body."""
        return self.kind in (DeclarationKind.CLASS_METHOD, DeclarationKind.CLASS_PROPERTY)


@dataclass(frozen=True)
class ClassMember:
    """A member ready to be spliced into a class body."""

    name: str
    text: str
    role: MemberRole
    is_static: bool = False
    origin: CandidateDeclaration | None = None


@dataclass(frozen=True)
class Addition:
    """A top-level statement to insert, already in statement form."""

    candidate: CandidateDeclaration
    text: str


@dataclass(frozen=True)
class Replacement:
    """An existing node and the text that takes its place."""

    target: Node
    candidate: CandidateDeclaration
    text: str


@dataclass(frozen=True)
class MemberReplacement:
    """An existing class member and the member replacing it."""

    target: Node
    member: ClassMember


@dataclass
class PatchPlan:
    """Decisions taken for every candidate of one snippet."""

    nodes_to_add: list[Addition] = field(default_factory=list)
    nodes_to_replace: list[Replacement] = field(default_factory=list)
    class_members_to_add: list[ClassMember] = field(default_factory=list)
    class_members_to_replace: list[MemberReplacement] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    target_class: Node | None = None

    @property
    def is_empty(self) -> bool:
        """True when the plan would not change the document."""
        return not (
            self.nodes_to_add
            or self.nodes_to_replace
            or self.class_members_to_add
            or self.class_members_to_replace
        )

    @property
    def handled_anything(self) -> bool:
        """True when any candidate was added, replaced or deliberately skipped."""
        return not self.is_empty or bool(self.skipped)


# =============================================================================
# Strategy results
# =============================================================================


@dataclass(frozen=True)
class Applied:
    """A strategy produced new file text."""

    text: str
    summary: str
    additions: int = 0
    replacements: int = 0
    keep_snippet_on_clipboard: bool = False


@dataclass(frozen=True)
class NoOp:
    """A strategy had nothing to contribute."""

    reason: str


@dataclass(frozen=True)
class Failed:
    """A strategy failed; terminal failures stop the cascade."""

    reason: str
    terminal: bool = False


StrategyResult = Applied | NoOp | Failed


@dataclass(frozen=True)
class PatchReport:
    """Outcome of one patch attempt."""

    success: bool
    strategy: str | None = None
    text: str | None = None
    additions: int = 0
    replacements: int = 0
    copied_to_clipboard: bool = False
    reason: str | None = None
