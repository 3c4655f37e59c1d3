"""Add / Replace / Skip decisions for snippet candidates.

The PatchPlanner walks the candidates in three passes:

1. exact name: the candidate that declares the error identifier wins and
   planning stops there
2. references: candidates that mention the error identifier
3. broad: every candidate, only when the earlier passes handled nothing

Class members are routed first through the ClassMemberPlanner when the
error sits inside a class.
"""

from __future__ import annotations

import structlog
from tree_sitter import Node

from ai_code_patcher.config.schema import PlannerConfig
from ai_code_patcher.core.class_members import (
    ClassMemberPlanner,
    member_from_node,
    member_to_statement,
    statement_to_member,
)
from ai_code_patcher.core.declarations import (
    canonical_name,
    equivalent,
    find_declaration,
    node_signature,
    normalize_code,
)
from ai_code_patcher.core.source_parser import SourceDocument
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.core.syntax import (
    CLASS_TYPES,
    FUNCTION_DECLARATION_TYPES,
    FUNCTION_EXPRESSION_TYPES,
    MEMBER_TYPES,
    VARIABLE_TYPES,
    bound_names,
    declarators,
    has_token,
    line_indent,
    references_identifier,
    relative_text,
    statements,
)
from ai_code_patcher.models.error import ErrorContext, ErrorDescriptor
from ai_code_patcher.models.patch import (
    Addition,
    CandidateDeclaration,
    DeclarationKind,
    PatchPlan,
    Replacement,
)
from ai_code_patcher.utils.errors import StructuralEditError
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()

FUNCTION_SHAPED_KINDS = (DeclarationKind.FUNCTION, DeclarationKind.CLASS_METHOD)


def statement_text(candidate: CandidateDeclaration) -> str | None:
    """Return a candidate in top-level statement form."""
    if candidate.is_member:
        return member_to_statement(candidate)
    return candidate.text


def _is_function_shaped(candidate: CandidateDeclaration) -> bool:
    if candidate.kind in FUNCTION_SHAPED_KINDS:
        return True
    node = candidate.node
    if node.type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        return declaration is not None and declaration.type in FUNCTION_DECLARATION_TYPES
    if node.type in VARIABLE_TYPES:
        for declarator in declarators(node):
            value = declarator.child_by_field_name("value")
            if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
                return True
    return False


def _is_class_shaped(candidate: CandidateDeclaration) -> bool:
    if candidate.kind is DeclarationKind.CLASS:
        return True
    node = candidate.node
    if node.type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        return declaration is not None and declaration.type in CLASS_TYPES
    return False


def _reindent_continuation(text: str, indent: str) -> str:
    lines = text.split("\n")
    return "\n".join([lines[0]] + [indent + line if line.strip() else line for line in lines[1:]])


def _variable_statement(node: Node) -> tuple[Node, str] | None:
    """Return a variable declaration and its `export ` prefix, if node is one."""
    if node.type in VARIABLE_TYPES:
        return node, ""
    if node.type == "export_statement" and not has_token(node, "default"):
        declaration = node.child_by_field_name("declaration")
        if declaration is not None and declaration.type in VARIABLE_TYPES:
            return declaration, "export "
    return None


def _declaration_keyword(declaration: Node) -> str:
    first = declaration.children[0] if declaration.children else None
    return first.type if first is not None and not first.is_named else "const"


def _declarator_replacement(existing: Node, keyword: str, declarator_text: str, name: str) -> str:
    """Shape one snippet declarator to replace an existing declaration.

    Raises:
        StructuralEditError: If the existing declaration is not a variable
    """
    if existing.type == "variable_declarator":
        return declarator_text
    if existing.type in VARIABLE_TYPES:
        return f"{keyword} {declarator_text};"
    variables = _variable_statement(existing)
    if variables is not None:
        return f"export {keyword} {declarator_text};"
    raise StructuralEditError(
        f"'{name}' is declared as a {existing.type}, not a variable", name=name
    )


def _edit_failed(status: StatusReporter, name: str | None, reason: str) -> None:
    log.warning(LogEventNames.STRUCTURAL_EDIT_ERROR, name=name, reason=reason)
    status.warning(f"Skipped {name or 'a snippet statement'}: {reason}")


class PatchPlanner:
    """Plan how snippet candidates change the document.

    Example:
        planner = PatchPlanner()
        plan = planner.plan(document, candidates, descriptor, context)
        for replacement in plan.nodes_to_replace:
            ...
    """

    def __init__(
        self,
        config: PlannerConfig | None = None,
        member_planner: ClassMemberPlanner | None = None,
    ) -> None:
        """Initialize the planner.

        Args:
            config: Planner configuration (defaults apply when None)
            member_planner: Planner used when the error sits in a class
        """
        self._config = config or PlannerConfig()
        self._members = member_planner or ClassMemberPlanner()

    def plan(
        self,
        document: SourceDocument,
        candidates: list[CandidateDeclaration],
        descriptor: ErrorDescriptor,
        context: ErrorContext,
        status: StatusReporter | None = None,
    ) -> PatchPlan:
        """Build the patch plan for one snippet.

        Args:
            document: Parsed file
            candidates: Snippet candidates in order
            descriptor: Error descriptor (supplies the error identifier)
            context: Located error context
            status: Receives a warning for each candidate that cannot be planned

        Returns:
            PatchPlan; empty when nothing would change
        """
        plan = PatchPlan()
        status = status or StatusReporter()

        member_plan = self._members.plan(document, candidates, context)
        if member_plan.consumed:
            plan.target_class = context.enclosing_class
            plan.class_members_to_add.extend(member_plan.to_add)
            plan.class_members_to_replace.extend(member_plan.to_replace)
            plan.skipped.extend(member_plan.skipped)
        remaining = [c for c in candidates if not member_plan.is_consumed(c)]

        planned: set[str] = set()
        identifier = descriptor.error_identifier
        if identifier:
            exact = next((c for c in remaining if c.canonical_name == identifier), None)
            if exact is not None:
                self._handle(document, exact, plan, planned, context, status)
                self._log_plan(plan, "exact")
                return plan
            for candidate in remaining:
                if references_identifier(candidate.node, identifier) and self._relevant(
                    candidate, identifier, context
                ):
                    self._handle(document, candidate, plan, planned, context, status)

        if not plan.handled_anything:
            for candidate in remaining:
                if self._relevant(candidate, identifier, context):
                    self._handle(document, candidate, plan, planned, context, status)

        self._log_plan(plan, "broad" if not identifier else "references")
        return plan

    def _relevant(
        self,
        candidate: CandidateDeclaration,
        identifier: str | None,
        context: ErrorContext,
    ) -> bool:
        """Decide whether a candidate belongs to this fix.

        The permissive policy keeps everything. The strict policy keeps a
        candidate that mentions the identifier or matches the shape of the
        code around the error.
        """
        if self._config.relevance == "permissive":
            return True
        in_function = context.enclosing_function is not None
        in_class = context.enclosing_class is not None
        if not identifier and not in_function and not in_class:
            return True
        if identifier and references_identifier(candidate.node, identifier):
            return True
        if in_function and _is_function_shaped(candidate):
            return True
        return in_class and _is_class_shaped(candidate)

    def _handle(
        self,
        document: SourceDocument,
        candidate: CandidateDeclaration,
        plan: PatchPlan,
        planned: set[str],
        context: ErrorContext,
        status: StatusReporter,
    ) -> None:
        """Apply the add / replace / skip rules to one candidate."""
        name = candidate.canonical_name
        if name is not None and name in planned:
            plan.skipped.append(name)
            return

        text = statement_text(candidate)
        if text is None:
            _edit_failed(status, name, "member has no top-level form")
            return

        if name is None:
            variables = _variable_statement(candidate.node)
            if variables is not None:
                self._handle_declarators(document, candidate, variables, plan, planned, status)
                return
            if self._has_identical_statement(document, text):
                plan.skipped.append(text.split("\n", 1)[0])
                log.debug(
                    LogEventNames.DECLARATION_SKIPPED, name=None, reason="identical statement"
                )
                return
            plan.nodes_to_add.append(Addition(candidate=candidate, text=text))
            log.debug(LogEventNames.DECLARATION_ADDED, name=None, kind=candidate.kind.value)
            return

        planned.add(name)
        existing = find_declaration(document.root, name, context.enclosing_class)
        if existing is None:
            if name in document.identifiers:
                plan.skipped.append(name)
                log.debug(LogEventNames.DECLARATION_SKIPPED, name=name, reason="declared elsewhere")
                return
            plan.nodes_to_add.append(Addition(candidate=candidate, text=text))
            log.debug(LogEventNames.DECLARATION_ADDED, name=name, kind=candidate.kind.value)
            return
        if equivalent(existing, candidate.node):
            plan.skipped.append(name)
            log.debug(LogEventNames.DECLARATION_SKIPPED, name=name, reason="identical")
            return

        try:
            replacement = self._adapt(document, existing, candidate, text)
        except StructuralEditError as e:
            _edit_failed(status, name, str(e))
            return
        if node_signature(existing) == normalize_code(replacement.text):
            plan.skipped.append(name)
            log.debug(LogEventNames.DECLARATION_SKIPPED, name=name, reason="identical")
            return
        plan.nodes_to_replace.append(replacement)
        log.debug(LogEventNames.DECLARATION_REPLACED, name=name, target=existing.type)

    def _handle_declarators(
        self,
        document: SourceDocument,
        candidate: CandidateDeclaration,
        variables: tuple[Node, str],
        plan: PatchPlan,
        planned: set[str],
        status: StatusReporter,
    ) -> None:
        """Plan a declaration without a single name one declarator at a time.

        Declarators binding only new names are added together as one
        statement; a declarator whose name the file already declares
        replaces that declaration or is skipped, so no name is declared
        twice.
        """
        declaration, prefix = variables
        keyword = _declaration_keyword(declaration)
        fresh: list[str] = []

        for declarator in declarators(declaration):
            names = bound_names(declarator)
            declarator_text = relative_text(declarator)
            repeated = [n for n in names if n in planned]
            if repeated:
                plan.skipped.extend(repeated)
                continue
            planned.update(names)
            declared = [n for n in names if n in document.identifiers]
            if not declared:
                fresh.append(declarator_text)
                continue

            name = canonical_name(declarator)
            existing = find_declaration(document.root, name) if name is not None else None
            if existing is None:
                plan.skipped.extend(declared)
                log.debug(
                    LogEventNames.DECLARATION_SKIPPED, name=declared, reason="declared elsewhere"
                )
                continue
            try:
                new_text = _declarator_replacement(existing, keyword, declarator_text, name)
            except StructuralEditError as e:
                _edit_failed(status, name, str(e))
                continue
            if node_signature(existing) == normalize_code(new_text):
                plan.skipped.append(name)
                log.debug(LogEventNames.DECLARATION_SKIPPED, name=name, reason="identical")
                continue
            indent = line_indent(document.source, existing.start_byte)
            plan.nodes_to_replace.append(
                Replacement(
                    target=existing,
                    candidate=candidate,
                    text=_reindent_continuation(new_text, indent),
                )
            )
            log.debug(LogEventNames.DECLARATION_REPLACED, name=name, target=existing.type)

        if fresh:
            text = f"{prefix}{keyword} {', '.join(fresh)};"
            plan.nodes_to_add.append(Addition(candidate=candidate, text=text))
            log.debug(LogEventNames.DECLARATION_ADDED, name=None, kind=candidate.kind.value)

    def _adapt(
        self,
        document: SourceDocument,
        existing: Node,
        candidate: CandidateDeclaration,
        text: str,
    ) -> Replacement:
        """Shape the replacement text to fit where the existing node sits.

        Raises:
            StructuralEditError: If the candidate cannot take that shape
        """
        name = candidate.canonical_name
        indent = line_indent(document.source, existing.start_byte)

        if existing.type in MEMBER_TYPES:
            member = (
                member_from_node(candidate.node, candidate)
                if candidate.is_member
                else statement_to_member(candidate, static=False)
            )
            if member is None:
                raise StructuralEditError(
                    "Replacement cannot be expressed as a class member", name=name
                )
            member_text = self._members.replacement_text(document, existing, member)
            return Replacement(target=existing, candidate=candidate, text=member_text)

        if existing.type == "variable_declarator":
            found = declarators(candidate.node) if candidate.node.type in VARIABLE_TYPES else []
            if len(found) != 1:
                raise StructuralEditError(
                    "Only a single declarator can replace a declarator", name=name
                )
            return Replacement(
                target=existing,
                candidate=candidate,
                text=_reindent_continuation(relative_text(found[0]), indent),
            )

        if existing.type == "export_statement" and candidate.kind is not DeclarationKind.EXPORT:
            keyword = "export default " if has_token(existing, "default") else "export "
            if canonical_name(existing) != name:
                raise StructuralEditError("Export does not wrap the declaration", name=name)
            text = keyword + text

        return Replacement(
            target=existing,
            candidate=candidate,
            text=_reindent_continuation(text, indent),
        )

    def _has_identical_statement(self, document: SourceDocument, text: str) -> bool:
        signature = normalize_code(text)
        return any(node_signature(node) == signature for node in statements(document.root))

    def _log_plan(self, plan: PatchPlan, mode: str) -> None:
        log.info(
            LogEventNames.PLAN_CREATED,
            mode=mode,
            additions=len(plan.nodes_to_add),
            replacements=len(plan.nodes_to_replace),
            class_members=len(plan.class_members_to_add),
            class_member_replacements=len(plan.class_members_to_replace),
            skipped=plan.skipped,
        )
