"""Naming, classification and comparison of declarations.

Both the file being patched and the snippet are plain tree-sitter trees;
this module gives their nodes the vocabulary the planners work with:
canonical names, declaration kinds and normalized equivalence.
"""

from __future__ import annotations

import re

from tree_sitter import Node

from ai_code_patcher.core.syntax import (
    CLASS_DECLARATION_TYPES,
    FIELD_TYPES,
    FUNCTION_DECLARATION_TYPES,
    TYPE_DECLARATION_TYPES,
    VARIABLE_TYPES,
    class_members,
    declarators,
    declared_name,
    has_token,
    member_name,
    relative_text,
    statements,
    strip_comments,
    text_of,
)
from ai_code_patcher.models.patch import CandidateDeclaration, DeclarationKind

DEFAULT_EXPORT_NAME = "_default_"

_WHITESPACE = re.compile(r"\s+")
_SEMICOLON_BEFORE_BRACE = re.compile(r";\s*}")
_EMPTY_PARENS = re.compile(r"\(\s*\)")
_EMPTY_BRACES = re.compile(r"{\s*}")
_LINE_COMMENT = re.compile(r"(?m)(?<![:\\])//.*$")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")


def canonical_name(node: Node) -> str | None:
    """Return the name a declaration introduces.

    Args:
        node: Statement, declarator or class member node

    Returns:
        Declared name, DEFAULT_EXPORT_NAME for an anonymous default export,
        or None when the node declares nothing nameable
    """
    node_type = node.type
    if node_type in FUNCTION_DECLARATION_TYPES or node_type in CLASS_DECLARATION_TYPES:
        return declared_name(node)
    if node_type in TYPE_DECLARATION_TYPES:
        return declared_name(node)
    if node_type in VARIABLE_TYPES:
        found = declarators(node)
        if len(found) == 1:
            return canonical_name(found[0])
        return None
    if node_type == "variable_declarator":
        name = node.child_by_field_name("name")
        if name is not None and name.type == "identifier":
            return text_of(name)
        return None
    if node_type == "method_definition" or node_type in FIELD_TYPES:
        return member_name(node)
    if node_type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            name = canonical_name(declaration)
            if name is not None:
                return name
        if has_token(node, "default"):
            value = node.child_by_field_name("value")
            if value is not None and value.type == "identifier":
                return text_of(value)
            if value is not None:
                named = declared_name(value) if value.type != "arrow_function" else None
                if named is not None:
                    return named
            return DEFAULT_EXPORT_NAME
        return None
    return None


def declaration_kind(node: Node) -> DeclarationKind:
    """Classify a top-level statement or class member node."""
    node_type = node.type
    if node_type in FUNCTION_DECLARATION_TYPES:
        return DeclarationKind.FUNCTION
    if node_type in VARIABLE_TYPES:
        return DeclarationKind.VARIABLE
    if node_type in CLASS_DECLARATION_TYPES:
        return DeclarationKind.CLASS
    if node_type == "export_statement":
        return DeclarationKind.EXPORT
    if node_type == "method_definition":
        return DeclarationKind.CLASS_METHOD
    if node_type in FIELD_TYPES:
        return DeclarationKind.CLASS_PROPERTY
    return DeclarationKind.OTHER


def make_candidate(node: Node) -> CandidateDeclaration:
    """Wrap a snippet node as a candidate declaration."""
    return CandidateDeclaration(
        node=node,
        kind=declaration_kind(node),
        canonical_name=canonical_name(node),
        text=relative_text(node),
    )


def normalize_code(code: str) -> str:
    """Normalize code text for equivalence checks.

    Comments are removed first so a `//` comment cannot swallow code once
    whitespace has been collapsed.
    """
    normalized = _BLOCK_COMMENT.sub("", code)
    normalized = _LINE_COMMENT.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized.strip())
    normalized = _SEMICOLON_BEFORE_BRACE.sub("}", normalized)
    normalized = _EMPTY_PARENS.sub("()", normalized)
    normalized = _EMPTY_BRACES.sub("{}", normalized)
    return normalized.strip()


def node_signature(node: Node) -> str:
    """Normalized, comment-free text of a node."""
    return normalize_code(strip_comments(node))


def equivalent(a: Node, b: Node) -> bool:
    """True when two nodes regenerate to the same normalized code."""
    return node_signature(a) == node_signature(b)


def text_equivalent(a: str, b: str) -> bool:
    """True when two code strings are equal after normalization."""
    return normalize_code(a) == normalize_code(b)


def find_declaration(root: Node, name: str, scope: Node | None = None) -> Node | None:
    """Return the program-level node that declares name.

    Only top-level statements are searched, looking through `export`, so a
    local inside some function body never matches. A single-declarator
    variable resolves to the whole statement and one declarator of a
    multi-declarator statement to that declarator. When scope is a class
    node its members are searched after the top level.
    """
    for statement in statements(root):
        found = _declaring_node(statement, name)
        if found is not None:
            return found
    if scope is not None:
        for member in class_members(scope):
            if member_name(member) == name:
                return member
    return None


def _declaring_node(statement: Node, name: str) -> Node | None:
    inner = statement
    if statement.type == "export_statement":
        inner = statement.child_by_field_name("declaration")
        if inner is None:
            # `export default name;` refers to a declaration elsewhere
            if name == DEFAULT_EXPORT_NAME and canonical_name(statement) == name:
                return statement
            return None
    if canonical_name(statement) == name:
        return statement
    if inner.type in VARIABLE_TYPES:
        for declarator in declarators(inner):
            if canonical_name(declarator) == name:
                return declarator
    return None
