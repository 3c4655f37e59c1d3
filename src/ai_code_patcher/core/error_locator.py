"""Mapping of a reported error line onto the syntax tree.

This module implements the ErrorLocator, which finds the nodes around an
error line in a single pass over the tree:
- the smallest node containing the line
- the best function-shaped node containing the line
- the nearest enclosing function and class
- class-member facts (method name, static, `this` references)
"""

from __future__ import annotations

import structlog
from tree_sitter import Node

from ai_code_patcher.core.source_parser import SourceDocument
from ai_code_patcher.core.syntax import (
    CLASS_TYPES,
    FUNCTION_DECLARATION_TYPES,
    FUNCTION_EXPRESSION_TYPES,
    FUNCTION_TYPES,
    MEMBER_TYPES,
    VARIABLE_TYPES,
    class_name,
    contains_row,
    declarators,
    is_static,
    member_name,
    walk,
)
from ai_code_patcher.models.error import (
    ClassMemberContext,
    ErrorContext,
    ErrorDescriptor,
    extract_error_identifier,
)
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()

__all__ = ["ErrorLocator", "extract_error_identifier", "function_score"]


def function_score(node: Node) -> int:
    """Rank how well a node represents "the function at the error".

    Exported functions rank highest, then function declarations, then
    variables initialized with a function, then methods. Anything else
    scores zero.
    """
    if node.type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        if declaration is not None and function_score(declaration) > 0:
            return 4
        return 0
    if node.type in FUNCTION_DECLARATION_TYPES:
        return 3
    if node.type in VARIABLE_TYPES:
        for declarator in declarators(node):
            value = declarator.child_by_field_name("value")
            if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
                return 2
        return 0
    if node.type == "method_definition":
        return 1
    return 0


def _ancestor(node: Node | None, types: frozenset[str] | set[str]) -> Node | None:
    """Return node itself or its nearest ancestor whose type is in types."""
    current = node
    while current is not None:
        if current.type in types:
            return current
        current = current.parent
    return None


class ErrorLocator:
    """Locate the code an error line belongs to.

    Example:
        locator = ErrorLocator()
        context = locator.locate(document, descriptor)
        if context.class_member.in_class:
            print(context.class_member.class_name)
    """

    def locate(self, document: SourceDocument, descriptor: ErrorDescriptor) -> ErrorContext:
        """Compute the error context for a descriptor's line hint.

        Args:
            document: Parsed file
            descriptor: Error descriptor with a 1-based line hint

        Returns:
            ErrorContext; empty when the line lies outside the document
        """
        if descriptor.line_hint > document.line_count:
            log.debug(
                LogEventNames.ERROR_LOCATED,
                line=descriptor.line_hint,
                line_count=document.line_count,
                found=False,
            )
            return ErrorContext.empty()

        row = descriptor.line_hint - 1
        smallest: Node | None = None
        smallest_key: tuple[int, int, int] | None = None
        best_function: Node | None = None
        best_function_key: tuple[int, int] | None = None

        for node in walk(document.root):
            if node.type in ("program", "comment") or not contains_row(node, row):
                continue
            line_span = node.end_point[0] - node.start_point[0]
            key = (
                line_span,
                abs(node.start_point[0] - row),
                node.end_byte - node.start_byte,
            )
            if smallest_key is None or key < smallest_key:
                smallest, smallest_key = node, key

            score = function_score(node)
            if score:
                function_key = (-score, line_span)
                if best_function_key is None or function_key < best_function_key:
                    best_function, best_function_key = node, function_key

        enclosing_node = best_function or smallest
        enclosing_function = _ancestor(smallest, FUNCTION_TYPES)
        enclosing_class = _ancestor(smallest, CLASS_TYPES)
        context = ErrorContext(
            enclosing_node=enclosing_node,
            enclosing_function=enclosing_function,
            enclosing_class=enclosing_class,
            class_member=self._class_member_context(
                smallest, enclosing_class, row, descriptor
            ),
        )
        log.debug(
            LogEventNames.ERROR_LOCATED,
            line=descriptor.line_hint,
            found=enclosing_node is not None,
            node_type=enclosing_node.type if enclosing_node is not None else None,
            in_class=context.class_member.in_class,
            class_name=context.class_member.class_name,
            member=context.class_member.method_name,
        )
        return context

    def _class_member_context(
        self,
        smallest: Node | None,
        enclosing_class: Node | None,
        row: int,
        descriptor: ErrorDescriptor,
    ) -> ClassMemberContext:
        """Derive class-member facts for the error location."""
        if enclosing_class is None:
            return ClassMemberContext()

        member = _ancestor(smallest, MEMBER_TYPES)
        if member is not None and _ancestor(member.parent, CLASS_TYPES) != enclosing_class:
            member = None

        references_self = descriptor.mentions_self or any(
            node.type == "this" and node.start_point[0] == row for node in walk(enclosing_class)
        )
        return ClassMemberContext(
            in_class=True,
            class_name=class_name(enclosing_class),
            in_method=member is not None,
            method_name=member_name(member) if member is not None else None,
            is_static=is_static(member) if member is not None else False,
            references_self=references_self,
        )
