"""Top-level insertion anchors for new declarations.

New statements are grouped into buckets (exports, classes, functions,
variables, other) and each bucket is anchored after the last existing
statement of the same kind. Missing kinds cascade:

- exports   -> end of the program
- classes   -> export anchor
- functions -> last variable declaration, then the class anchor
- variables -> function anchor
- other     -> statement nearest the error line, then the function anchor

An anchor of None means "start of the program, after any imports".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ai_code_patcher.core.declarations import declaration_kind
from ai_code_patcher.core.regenerator import StatementArena
from ai_code_patcher.models.patch import Addition, DeclarationKind


class Bucket(StrEnum):
    """Placement group of a top-level statement."""

    EXPORT = "export"
    CLASS = "class"
    FUNCTION = "function"
    VARIABLE = "variable"
    OTHER = "other"


_KIND_BUCKETS = {
    DeclarationKind.EXPORT: Bucket.EXPORT,
    DeclarationKind.CLASS: Bucket.CLASS,
    DeclarationKind.FUNCTION: Bucket.FUNCTION,
    DeclarationKind.CLASS_METHOD: Bucket.FUNCTION,
    DeclarationKind.VARIABLE: Bucket.VARIABLE,
    DeclarationKind.CLASS_PROPERTY: Bucket.VARIABLE,
}


def bucket_of(kind: DeclarationKind) -> Bucket:
    """Map a declaration kind to its placement bucket.

    Class members converted to statements follow their statement form:
    methods become functions and properties become variables.
    """
    return _KIND_BUCKETS.get(kind, Bucket.OTHER)


@dataclass(frozen=True)
class Anchors:
    """Slot id each bucket is inserted after (None = program start)."""

    export: int | None
    klass: int | None
    function: int | None
    variable: int | None
    other: int | None

    def for_bucket(self, bucket: Bucket) -> int | None:
        return {
            Bucket.EXPORT: self.export,
            Bucket.CLASS: self.klass,
            Bucket.FUNCTION: self.function,
            Bucket.VARIABLE: self.variable,
            Bucket.OTHER: self.other,
        }[bucket]


class InsertionPlanner:
    """Choose where new top-level statements go.

    Example:
        planner = InsertionPlanner()
        for addition, anchor in planner.place(arena, plan.nodes_to_add, error_row=4):
            arena.insert_after(anchor, addition.text)
    """

    def anchors(self, arena: StatementArena, error_row: int | None = None) -> Anchors:
        """Compute the anchor of every bucket from the arena's slots.

        Args:
            arena: Statement arena of the document being patched
            error_row: 0-based error row, or None when the line is unknown

        Returns:
            Anchors keyed by bucket
        """
        last: dict[Bucket, int] = {}
        for slot in arena.slots:
            last[bucket_of(declaration_kind(slot.node))] = slot.id

        end = arena.slots[-1].id if arena.slots else None
        export = last.get(Bucket.EXPORT, end)
        klass = last.get(Bucket.CLASS, export)
        function = last.get(Bucket.FUNCTION, last.get(Bucket.VARIABLE, klass))
        variable = last.get(Bucket.VARIABLE, function)

        other = function
        if error_row is not None and arena.slots:
            nearest = min(arena.slots, key=lambda s: (abs(s.start_row - error_row), s.id))
            other = nearest.id

        return Anchors(
            export=export,
            klass=klass,
            function=function,
            variable=variable,
            other=other,
        )

    def place(
        self,
        arena: StatementArena,
        additions: list[Addition],
        error_row: int | None = None,
    ) -> list[tuple[Addition, int | None]]:
        """Pair each addition with the slot it is inserted after.

        Anchors are computed once from the original statements, so the
        order of additions sharing an anchor is the snippet order.
        """
        anchors = self.anchors(arena, error_row)
        return [
            (addition, anchors.for_bucket(bucket_of(addition.candidate.kind)))
            for addition in additions
        ]
