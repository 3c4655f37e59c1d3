"""Class-member detection, conversion and placement.

When an error sits inside a class, snippet pieces often belong in that
class rather than at the top level. This module decides which candidates
are members, converts statement shapes into member shapes (and back),
and works out where each new member goes inside the class body.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from tree_sitter import Node

from ai_code_patcher.config.schema import FormattingConfig
from ai_code_patcher.core.declarations import equivalent, text_equivalent
from ai_code_patcher.core.snippet_segmenter import parse_members
from ai_code_patcher.core.source_parser import SourceDocument
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.core.syntax import (
    FIELD_TYPES,
    FUNCTION_DECLARATION_TYPES,
    FUNCTION_EXPRESSION_TYPES,
    VARIABLE_TYPES,
    class_body,
    class_members,
    declarators,
    first_on_line,
    has_token,
    is_static,
    line_indent,
    member_name,
    relative_text,
    text_of,
    trailing_end,
    uses_this,
)
from ai_code_patcher.models.error import ErrorContext
from ai_code_patcher.models.patch import (
    CandidateDeclaration,
    ClassMember,
    DeclarationKind,
    MemberReplacement,
    MemberRole,
)
from ai_code_patcher.utils.errors import StructuralEditError
from ai_code_patcher.utils.logging import LogEventNames
from ai_code_patcher.utils.text import dedent_continuation, reindent

log = structlog.get_logger()


# =============================================================================
# Shape conversion
# =============================================================================


def _field_text(node: Node, name: str) -> str:
    field_node = node.child_by_field_name(name)
    return text_of(field_node) if field_node is not None else ""


def _function_parts(node: Node, column: int) -> tuple[str, str, str] | None:
    """Return (prefix, signature, body) of a function-like node.

    prefix holds `async ` and/or `*`; signature holds type parameters,
    parameters and return type. Body lines are re-based to column, the
    indentation of the statement that owns the function.
    """
    body = node.child_by_field_name("body")
    if body is None:
        return None
    prefix = "async " if has_token(node, "async") else ""
    if node.type in ("generator_function_declaration", "generator_function") or has_token(
        node, "*"
    ):
        prefix += "*"
    parameters = node.child_by_field_name("parameters")
    if parameters is not None:
        params = text_of(parameters)
    else:
        single = node.child_by_field_name("parameter")
        if single is None:
            return None
        params = f"({text_of(single)})"
    signature = _field_text(node, "type_parameters") + params + _field_text(node, "return_type")
    body_text = dedent_continuation(text_of(body), column)
    if body.type != "statement_block":
        body_text = "{\n  return " + body_text + ";\n}"
    return prefix, signature, body_text


def statement_to_member(candidate: CandidateDeclaration, static: bool) -> ClassMember | None:
    """Convert a function or variable declaration into a class member.

    Args:
        candidate: Top-level candidate from the snippet
        static: Whether the new member is static

    Returns:
        The member, or None when the shape has no member equivalent
    """
    node = candidate.node
    name = candidate.canonical_name
    column = node.start_point[1]
    static_prefix = "static " if static else ""
    if name is None:
        return None

    if node.type in FUNCTION_DECLARATION_TYPES:
        parts = _function_parts(node, column)
        if parts is None:
            return None
        prefix, signature, body = parts
        text = f"{static_prefix}{prefix}{name}{signature} {body}"
        return ClassMember(name, text, MemberRole.METHOD, static, candidate)

    if node.type in VARIABLE_TYPES:
        found = declarators(node)
        if len(found) != 1:
            return None
        value = found[0].child_by_field_name("value")
        if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
            parts = _function_parts(value, column)
            if parts is None:
                return None
            prefix, signature, body = parts
            text = f"{static_prefix}{prefix}{name}{signature} {body}"
            return ClassMember(name, text, MemberRole.METHOD, static, candidate)
        type_annotation = _field_text(found[0], "type")
        if value is None:
            text = f"{static_prefix}{name}{type_annotation};"
        else:
            value_text = dedent_continuation(text_of(value), column)
            text = f"{static_prefix}{name}{type_annotation} = {value_text};"
        return ClassMember(name, text, MemberRole.PROPERTY, static, candidate)

    return None


def member_to_statement(candidate: CandidateDeclaration) -> str | None:
    """Convert a class-member candidate into a top-level statement.

    Methods become function declarations and fields become `const`
    bindings. Accessors, constructors and computed keys have no
    statement form.
    """
    node = candidate.node
    name = member_name(node)
    column = node.start_point[1]
    if name is None or name == "constructor":
        return None
    if node.type == "method_definition":
        if has_token(node, "get") or has_token(node, "set"):
            return None
        parts = _function_parts(node, column)
        if parts is None:
            return None
        prefix, signature, body = parts
        keyword = "async function" if prefix.startswith("async ") else "function"
        if prefix.endswith("*"):
            keyword += "*"
        return f"{keyword} {name}{signature} {body}"
    if node.type in FIELD_TYPES:
        value = node.child_by_field_name("value")
        type_annotation = _field_text(node, "type")
        value_text = "undefined"
        if value is not None:
            value_text = dedent_continuation(text_of(value), column)
        return f"const {name}{type_annotation} = {value_text};"
    return None


def member_from_node(node: Node, candidate: CandidateDeclaration | None) -> ClassMember | None:
    """Describe an already-parsed member node as a ClassMember."""
    name = member_name(node)
    if name is None:
        return None
    text = relative_text(node)
    if node.type == "method_definition":
        role = MemberRole.CONSTRUCTOR if name == "constructor" else MemberRole.METHOD
    else:
        role = MemberRole.PROPERTY
        if not text.rstrip().endswith(";"):
            text = text.rstrip() + ";"
    return ClassMember(name, text, role, is_static(node), candidate)


# =============================================================================
# Planning
# =============================================================================


@dataclass
class MemberPlan:
    """Class-member decisions for one target class."""

    consumed: list[CandidateDeclaration] = field(default_factory=list)
    to_add: list[ClassMember] = field(default_factory=list)
    to_replace: list[MemberReplacement] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def is_consumed(self, candidate: CandidateDeclaration) -> bool:
        """True when candidate was routed into the class."""
        return any(c is candidate for c in self.consumed)


@dataclass(frozen=True)
class MemberInsertion:
    """A member text to splice at a byte offset of the class body."""

    position: int
    text: str


class ClassMemberPlanner:
    """Route snippet candidates into the class that contains the error.

    Responsibilities:
    - Recognize members (directly parseable, or convertible and likely)
    - Skip or replace members the class already has
    - Order new members: constructor, static properties, instance
      properties, static methods, instance methods
    - Produce byte-offset insertions that keep the class's layout
    """

    def __init__(self, formatting: FormattingConfig | None = None) -> None:
        """Initialize the planner.

        Args:
            formatting: Indentation settings (defaults apply when None)
        """
        self._formatting = formatting or FormattingConfig()

    def plan(
        self,
        document: SourceDocument,
        candidates: list[CandidateDeclaration],
        context: ErrorContext,
    ) -> MemberPlan:
        """Decide which candidates become members of the enclosing class.

        Args:
            document: Parsed file
            candidates: Snippet candidates
            context: Error context; nothing happens outside a class

        Returns:
            MemberPlan with consumed candidates and member decisions
        """
        result = MemberPlan()
        target = context.enclosing_class
        info = context.class_member
        if target is None or not info.in_class:
            return result

        existing = {member_name(node): node for node in class_members(target)}
        seen: set[str] = set()

        for candidate in candidates:
            members = self._as_members(document, candidate, context)
            if not members:
                continue
            result.consumed.append(candidate)
            for member in members:
                if member.name in seen:
                    continue
                seen.add(member.name)
                current = existing.get(member.name)
                if current is None:
                    result.to_add.append(member)
                elif self._same_member(current, member, document.dialect):
                    result.skipped.append(member.name)
                    log.debug(LogEventNames.DECLARATION_SKIPPED, name=member.name, scope="class")
                else:
                    result.to_replace.append(MemberReplacement(target=current, member=member))
        return result

    def _as_members(
        self,
        document: SourceDocument,
        candidate: CandidateDeclaration,
        context: ErrorContext,
    ) -> list[ClassMember]:
        """Return candidate as class members, or [] when it is not one."""
        nodes = parse_members(candidate.text, document.dialect)
        if nodes is not None:
            members = [member_from_node(node, candidate) for node in nodes]
            return [m for m in members if m is not None]

        if not self._likely_member(candidate, context):
            return []
        member = statement_to_member(candidate, context.class_member.is_static)
        return [member] if member is not None else []

    def _likely_member(self, candidate: CandidateDeclaration, context: ErrorContext) -> bool:
        if candidate.kind not in (DeclarationKind.FUNCTION, DeclarationKind.VARIABLE):
            return False
        info = context.class_member
        if candidate.canonical_name is not None and candidate.canonical_name == info.method_name:
            return True
        if uses_this(candidate.node):
            return True
        return info.references_self

    def _same_member(self, existing: Node, member: ClassMember, dialect: str) -> bool:
        parsed = parse_members(member.text, dialect)
        if parsed and len(parsed) == 1:
            return equivalent(existing, parsed[0])
        return text_equivalent(text_of(existing), member.text)

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    def insertions(
        self,
        document: SourceDocument,
        target: Node,
        members: list[ClassMember],
        status: StatusReporter | None = None,
    ) -> list[MemberInsertion]:
        """Compute where each new member goes in the target class body.

        Args:
            document: Parsed file that contains target
            target: Class node receiving the members
            members: New members, in snippet order
            status: Receives a warning for each member that cannot be placed

        Returns:
            Insertions in the order they must be applied at equal offsets

        Raises:
            StructuralEditError: If the class has no body
        """
        body = class_body(target)
        if body is None:
            raise StructuralEditError("Class has no body", name=None)

        existing = class_members(target)
        constructor = next((n for n in existing if member_name(n) == "constructor"), None)
        properties = [n for n in existing if n.type in FIELD_TYPES]
        last_property = properties[-1] if properties else None

        buckets: list[tuple[ClassMember, Node | str]] = []
        has_constructor = constructor is not None
        ordered = sorted(members, key=_bucket_order)
        for member in ordered:
            if member.role is MemberRole.CONSTRUCTOR:
                if has_constructor:
                    log.warning(
                        LogEventNames.STRUCTURAL_EDIT_ERROR,
                        name="constructor",
                        reason="class already has a constructor",
                    )
                    if status is not None:
                        status.warning("Skipped constructor: class already has a constructor")
                    continue
                has_constructor = True
                buckets.append((member, "start"))
            elif member.role is MemberRole.PROPERTY and member.is_static:
                buckets.append((member, constructor if constructor is not None else "start"))
            elif member.role is MemberRole.PROPERTY:
                anchor = last_property or constructor
                buckets.append((member, anchor if anchor is not None else "start"))
            elif member.is_static:
                buckets.append((member, last_property if last_property is not None else "end"))
            else:
                buckets.append((member, "end"))

        layout = _BodyLayout(document, body, existing, self._formatting.indent)
        return [layout.insertion(member, anchor) for member, anchor in buckets]

    def replacement_text(self, document: SourceDocument, target: Node, member: ClassMember) -> str:
        """Text that replaces an existing member node in place."""
        text = member.text
        if target.type in FIELD_TYPES and text.rstrip().endswith(";"):
            # the separating `;` stays in the file
            text = text.rstrip()[:-1]
        if is_static(target) and not member.is_static:
            text = "static " + text
        indent = line_indent(document.source, target.start_byte)
        lines = text.split("\n")
        return "\n".join([lines[0]] + [indent + line if line.strip() else line for line in lines[1:]])


def _bucket_order(member: ClassMember) -> int:
    if member.role is MemberRole.CONSTRUCTOR:
        return 0
    if member.role is MemberRole.PROPERTY:
        return 1 if member.is_static else 2
    return 3 if member.is_static else 4


class _BodyLayout:
    """Formatting facts about one class body."""

    def __init__(
        self,
        document: SourceDocument,
        body: Node,
        existing: list[Node],
        indent_unit: str,
    ) -> None:
        self._source = document.source
        self._body = body
        self._existing = existing
        close = body.end_byte - 1
        self._close = close
        self._multiline = body.start_point[0] != body.end_point[0]
        if existing and first_on_line(self._source, existing[0].start_byte):
            self._indent = line_indent(self._source, existing[0].start_byte)
        else:
            self._indent = line_indent(self._source, close) + indent_unit
        self._closing_on_own_line = first_on_line(self._source, close)

    def insertion(self, member: ClassMember, anchor: Node | str) -> MemberInsertion:
        is_method = member.role is not MemberRole.PROPERTY
        if not self._multiline:
            return self._inline(member, anchor)

        block = reindent(member.text, self._indent)
        if not isinstance(anchor, Node):
            return self._at_edge(anchor, block, is_method)
        gap = "\n" if is_method else ""
        return MemberInsertion(trailing_end(anchor), "\n" + gap + block)

    def _at_edge(self, anchor: str, block: str, is_method: bool) -> MemberInsertion:
        gap = "\n" if is_method and self._existing else ""
        if anchor == "start":
            return MemberInsertion(self._body.start_byte + 1, "\n" + block + gap)
        if self._closing_on_own_line:
            line_start = self._source.rfind(b"\n", 0, self._close) + 1
            return MemberInsertion(line_start, gap + block + "\n")
        return MemberInsertion(self._close, "\n" + gap + block + "\n")

    def _inline(self, member: ClassMember, anchor: Node | str) -> MemberInsertion:
        text = " ".join(line.strip() for line in member.text.split("\n"))
        if isinstance(anchor, str) and anchor == "start" and self._existing:
            return MemberInsertion(self._body.start_byte + 1, " " + text)
        if isinstance(anchor, str):
            before = self._source[self._close - 1 : self._close]
            prefix = "" if before == b" " else " "
            return MemberInsertion(self._close, prefix + text + " ")
        assert isinstance(anchor, Node)
        return MemberInsertion(trailing_end(anchor), " " + text)
