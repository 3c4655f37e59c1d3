"""Patch strategies and the state they share during one attempt.

Strategies are pure: they read a PatchAttempt and return the new file
text (Applied), nothing (NoOp) or a failure. Persisting the text and
copying to the clipboard are left to the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from ai_code_patcher.config.schema import PatcherConfig
from ai_code_patcher.core.class_members import ClassMemberPlanner
from ai_code_patcher.core.insertion import InsertionPlanner
from ai_code_patcher.core.patch_planner import PatchPlanner
from ai_code_patcher.core.regenerator import StatementArena
from ai_code_patcher.core.source_parser import SourceDocument, parse_tree
from ai_code_patcher.core.status import StatusReporter
from ai_code_patcher.core.syntax import has_syntax_errors
from ai_code_patcher.models.error import ErrorContext, ErrorDescriptor
from ai_code_patcher.models.patch import (
    Applied,
    CandidateDeclaration,
    NoOp,
    PatchPlan,
    StrategyResult,
)
from ai_code_patcher.utils.errors import StructuralEditError
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()


@dataclass
class PatchAttempt:
    """Request-scoped state of one patch attempt.

    Attributes:
        file_name: Name of the file being patched
        original_text: File content before patching
        snippet: Cleaned replacement snippet
        descriptor: Normalized error details
        context: Located error context (reset to empty after a strategy crash)
        document: Parsed file
        candidates: Snippet candidates, empty when nothing parsed
        status: Status reporter for user-facing messages
    """

    file_name: str
    original_text: str
    snippet: str
    descriptor: ErrorDescriptor
    context: ErrorContext
    document: SourceDocument | None = None
    candidates: list[CandidateDeclaration] = field(default_factory=list)
    status: StatusReporter = field(default_factory=StatusReporter)

    @property
    def error_row(self) -> int | None:
        """0-based error row, or None when the caller gave no line."""
        if not self.descriptor.has_line:
            return None
        return self.descriptor.line_hint - 1


class PatchStrategy(Protocol):
    """One step of the strategy cascade."""

    name: str

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        """
        Try to produce new file text.

        Args:
            attempt: Shared attempt state

        Returns:
            Applied with the new text, NoOp, or Failed
        """
        ...


class StructuralStrategy:
    """Syntax-tree patching: plan, edit the statement arena, render.

    Example:
        strategy = StructuralStrategy(config)
        result = strategy.run(attempt)
        if isinstance(result, Applied):
            ...
    """

    name = "structural"

    def __init__(self, config: PatcherConfig | None = None) -> None:
        """Initialize the planners from configuration.

        Args:
            config: Patcher configuration (defaults apply when None)
        """
        config = config or PatcherConfig()
        self._members = ClassMemberPlanner(config.formatting)
        self._planner = PatchPlanner(config.planner, self._members)
        self._insertion = InsertionPlanner()

    def run(self, attempt: PatchAttempt) -> StrategyResult:
        document = attempt.document
        if document is None:
            return NoOp("source was not parsed")
        if not attempt.candidates:
            return NoOp("snippet has no parseable declarations")

        plan = self._planner.plan(
            document, attempt.candidates, attempt.descriptor, attempt.context, attempt.status
        )
        if plan.is_empty:
            if plan.skipped:
                attempt.status.info(
                    f"Code already up to date: {', '.join(plan.skipped)}"
                )
            return NoOp("plan is empty")

        arena = StatementArena(document)
        self._apply_plan(document, arena, plan, attempt.error_row, attempt.status)
        if arena.edit_count == 0:
            return NoOp("no edit could be applied")

        text = arena.render()
        if text == attempt.original_text:
            return NoOp("rendered text is unchanged")
        if has_syntax_errors(parse_tree(text, document.dialect).root_node) and not has_syntax_errors(
            document.root
        ):
            log.warning(LogEventNames.STRUCTURAL_EDIT_ERROR, reason="regenerated text does not parse")
            return NoOp("regenerated text does not parse")

        return Applied(
            text=text,
            summary=_summary(arena, plan),
            additions=arena.additions,
            replacements=arena.replacements,
        )

    def _apply_plan(
        self,
        document: SourceDocument,
        arena: StatementArena,
        plan: PatchPlan,
        error_row: int | None,
        status: StatusReporter,
    ) -> None:
        """Record every planned change in the arena.

        Replacements go first; a node that cannot be edited is reported as
        a warning and the rest of the batch continues.
        """
        for replacement in plan.nodes_to_replace:
            try:
                arena.replace(replacement.target, replacement.text)
            except StructuralEditError as e:
                _edit_failed(status, replacement.candidate.canonical_name, e)

        for member_replacement in plan.class_members_to_replace:
            text = self._members.replacement_text(
                document, member_replacement.target, member_replacement.member
            )
            try:
                arena.replace(member_replacement.target, text)
            except StructuralEditError as e:
                _edit_failed(status, member_replacement.member.name, e)

        if plan.class_members_to_add and plan.target_class is not None:
            try:
                insertions = self._members.insertions(
                    document, plan.target_class, plan.class_members_to_add, status
                )
            except StructuralEditError as e:
                _edit_failed(status, None, e)
                insertions = []
            for insertion in insertions:
                try:
                    arena.insert_at(insertion.position, insertion.text)
                except StructuralEditError as e:
                    _edit_failed(status, None, e)
                    continue
                log.debug(LogEventNames.CLASS_MEMBER_ADDED, position=insertion.position)

        for addition, anchor in self._insertion.place(arena, plan.nodes_to_add, error_row):
            try:
                arena.insert_after(anchor, addition.text)
            except StructuralEditError as e:
                _edit_failed(status, addition.candidate.canonical_name, e)


def _edit_failed(status: StatusReporter, name: str | None, error: StructuralEditError) -> None:
    log.warning(LogEventNames.STRUCTURAL_EDIT_ERROR, name=name or error.name, reason=str(error))
    status.warning(f"Could not apply the change to {name or error.name or 'the class'}: {error}")


def _summary(arena: StatementArena, plan: PatchPlan) -> str:
    parts = []
    if arena.replacements:
        parts.append(f"replaced {arena.replacements}")
    if arena.additions:
        parts.append(f"added {arena.additions}")
    summary = "Applied fix: " + " and ".join(parts) + " declaration(s)"
    if plan.skipped:
        summary += f"; unchanged: {', '.join(plan.skipped)}"
    return summary
