"""Helpers for walking and slicing tree-sitter syntax trees.

Node categories below cover both the JavaScript and the TypeScript/TSX
grammars, which share most node names.
"""

from __future__ import annotations

from collections.abc import Iterator

from tree_sitter import Node

from ai_code_patcher.utils.text import dedent_continuation, leading_whitespace

FUNCTION_DECLARATION_TYPES = frozenset({"function_declaration", "generator_function_declaration"})
FUNCTION_EXPRESSION_TYPES = frozenset(
    {"function_expression", "function", "generator_function", "arrow_function"}
)
FUNCTION_TYPES = FUNCTION_DECLARATION_TYPES | FUNCTION_EXPRESSION_TYPES | {"method_definition"}
CLASS_DECLARATION_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})
CLASS_TYPES = CLASS_DECLARATION_TYPES | {"class"}
VARIABLE_TYPES = frozenset({"lexical_declaration", "variable_declaration"})
FIELD_TYPES = frozenset({"field_definition", "public_field_definition"})
MEMBER_TYPES = FIELD_TYPES | {"method_definition"}
TYPE_DECLARATION_TYPES = frozenset(
    {"interface_declaration", "type_alias_declaration", "enum_declaration"}
)
IDENTIFIER_TYPES = frozenset(
    {
        "identifier",
        "property_identifier",
        "private_property_identifier",
        "shorthand_property_identifier",
        "shorthand_property_identifier_pattern",
        "type_identifier",
    }
)
IGNORED_STATEMENT_TYPES = frozenset({"comment", "empty_statement", "hash_bang_line"})


def text_of(node: Node) -> str:
    """Return the source text covered by node."""
    raw = node.text or b""
    return raw.decode("utf-8", errors="replace")


def relative_text(node: Node) -> str:
    """Return node text with continuation lines re-based to the node's column."""
    return dedent_continuation(text_of(node), node.start_point[1])


def walk(node: Node) -> Iterator[Node]:
    """Yield node and all its named descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.named_children))


def statements(root: Node) -> list[Node]:
    """Return the meaningful top-level statements of a program node."""
    return [child for child in root.named_children if child.type not in IGNORED_STATEMENT_TYPES]


def has_token(node: Node, token: str) -> bool:
    """True when node has a direct anonymous child of the given type."""
    return any(not child.is_named and child.type == token for child in node.children)


def is_static(node: Node) -> bool:
    """True for a `static` class member."""
    return has_token(node, "static")


def member_name_node(node: Node) -> Node | None:
    """Return the key node of a class method or field."""
    if node.type == "field_definition":
        return node.child_by_field_name("property")
    if node.type in ("method_definition", "public_field_definition"):
        return node.child_by_field_name("name")
    return None


def member_name(node: Node) -> str | None:
    """Return the plain name of a class member, or None for computed keys."""
    key = member_name_node(node)
    if key is None or key.type not in IDENTIFIER_TYPES:
        return None
    return text_of(key)


def declared_name(node: Node) -> str | None:
    """Return the identifier in the `name` field of a declaration-like node."""
    name = node.child_by_field_name("name")
    if name is None or name.type not in IDENTIFIER_TYPES:
        return None
    return text_of(name)


def declarators(node: Node) -> list[Node]:
    """Return the variable declarators of a lexical/variable declaration."""
    return [child for child in node.named_children if child.type == "variable_declarator"]


def bound_names(declarator: Node) -> list[str]:
    """Return the names a variable declarator binds, destructuring included.

    Default values (`{ a = b }`) and renamed keys (`{ key: a }`) contribute
    only the bound side.
    """
    name = declarator.child_by_field_name("name")
    return _pattern_names(name) if name is not None else []


def _pattern_names(node: Node) -> list[str]:
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        return [text_of(node)]
    if node.type in ("assignment_pattern", "object_assignment_pattern"):
        left = node.child_by_field_name("left")
        return _pattern_names(left) if left is not None else []
    if node.type == "pair_pattern":
        value = node.child_by_field_name("value")
        return _pattern_names(value) if value is not None else []
    names: list[str] = []
    for child in node.named_children:
        names.extend(_pattern_names(child))
    return names


def class_body(node: Node) -> Node | None:
    """Return the body of a class node."""
    body = node.child_by_field_name("body")
    if body is not None and body.type == "class_body":
        return body
    for child in node.named_children:
        if child.type == "class_body":
            return child
    return None


def class_members(node: Node) -> list[Node]:
    """Return the methods and fields of a class node, in source order."""
    body = class_body(node)
    if body is None:
        return []
    return [child for child in body.named_children if child.type in MEMBER_TYPES]


def class_name(node: Node) -> str | None:
    """Return a class's name, using the binding name for `const X = class {}`."""
    name = declared_name(node)
    if name is not None:
        return name
    parent = node.parent
    if parent is not None and parent.type == "variable_declarator":
        return declared_name(parent)
    return None


def member_end(node: Node) -> int:
    """End byte of a class member including a separating `;` token."""
    sibling = node.next_sibling
    if sibling is not None and not sibling.is_named and sibling.type == ";":
        return sibling.end_byte
    return node.end_byte


def trailing_end(node: Node) -> int:
    """End byte of node extended over a comment that shares its last line."""
    end = member_end(node)
    sibling = node.next_sibling
    while sibling is not None and not sibling.is_named and sibling.type == ";":
        sibling = sibling.next_sibling
    if (
        sibling is not None
        and sibling.type == "comment"
        and sibling.start_point[0] == node.end_point[0]
    ):
        return sibling.end_byte
    return end


def contains_row(node: Node, row: int) -> bool:
    """True when node spans the given 0-based row."""
    return node.start_point[0] <= row <= node.end_point[0]


def line_indent(source: bytes, byte_offset: int) -> str:
    """Return the indentation of the line containing byte_offset."""
    line_start = source.rfind(b"\n", 0, byte_offset) + 1
    line_end = source.find(b"\n", line_start)
    if line_end == -1:
        line_end = len(source)
    line = source[line_start:line_end].decode("utf-8", errors="replace")
    return leading_whitespace(line)


def first_on_line(source: bytes, byte_offset: int) -> bool:
    """True when only whitespace precedes byte_offset on its line."""
    line_start = source.rfind(b"\n", 0, byte_offset) + 1
    return not source[line_start:byte_offset].strip()


def strip_comments(node: Node) -> str:
    """Regenerate node text with every comment descendant removed."""
    if node.type == "comment":
        return ""
    source = node.text or b""
    base = node.start_byte
    pieces: list[bytes] = []
    cursor = 0
    for descendant in walk(node):
        if descendant.type != "comment":
            continue
        start = descendant.start_byte - base
        if start < cursor:
            continue
        pieces.append(source[cursor:start])
        cursor = descendant.end_byte - base
    pieces.append(source[cursor:])
    return b" ".join(pieces).decode("utf-8", errors="replace")


def references_identifier(node: Node, name: str) -> bool:
    """True when any identifier-like node under node spells name."""
    encoded = name.encode("utf-8")
    return any(
        descendant.type in IDENTIFIER_TYPES and descendant.text == encoded
        for descendant in walk(node)
    )


def uses_this(node: Node) -> bool:
    """True when node contains a `this` expression."""
    return any(descendant.type == "this" for descendant in walk(node))


def has_syntax_errors(node: Node) -> bool:
    """True when node contains ERROR or MISSING nodes."""
    if node.has_error:
        return True
    return any(descendant.is_missing for descendant in walk(node))
