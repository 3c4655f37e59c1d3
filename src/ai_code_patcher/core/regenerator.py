"""Statement arena and text regeneration.

The document's top-level statements are held as slots with stable ids.
Edits never move existing bytes around: replacements are splices over the
original byte ranges, and additions are anchored "after slot N" (or at the
program start). Rendering applies everything in one pass over the
original source, so untouched code is reproduced byte for byte.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from tree_sitter import Node

from ai_code_patcher.core.source_parser import SourceDocument
from ai_code_patcher.core.syntax import statements, trailing_end
from ai_code_patcher.utils.errors import StructuralEditError
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()

PROLOGUE_TYPES = frozenset({"import_statement", "hash_bang_line"})


@dataclass(frozen=True)
class Slot:
    """One top-level statement of the document."""

    id: int
    node: Node
    insert_at: int

    @property
    def type(self) -> str:
        return self.node.type

    @property
    def start_row(self) -> int:
        return self.node.start_point[0]


@dataclass(frozen=True)
class _Edit:
    start: int
    end: int
    text: str
    order: int

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


def _is_directive(node: Node) -> bool:
    if node.type != "expression_statement":
        return False
    child = node.named_children[0] if node.named_children else None
    return child is not None and child.type == "string"


class StatementArena:
    """Top-level statements of one document plus pending edits.

    Example:
        arena = StatementArena(document)
        arena.replace(existing_node, "function a() { return 2; }")
        arena.insert_after(arena.slots[-1].id, "const b = 1;")
        new_text = arena.render()
    """

    def __init__(self, document: SourceDocument) -> None:
        """Build slots for every top-level statement of document."""
        self._document = document
        self.slots: list[Slot] = [
            Slot(id=index, node=node, insert_at=trailing_end(node))
            for index, node in enumerate(statements(document.root))
        ]
        self._edits: list[_Edit] = []
        self.replacements = 0
        self.additions = 0

    @property
    def edit_count(self) -> int:
        """Number of edits that will change the text."""
        return len(self._edits)

    def slot(self, slot_id: int) -> Slot:
        """Look up a slot by id."""
        return self.slots[slot_id]

    @property
    def prologue_slot(self) -> int | None:
        """Id of the last leading import or directive, or None."""
        last: int | None = None
        for slot in self.slots:
            if slot.type in PROLOGUE_TYPES or _is_directive(slot.node):
                last = slot.id
            else:
                break
        return last

    def replace(self, node: Node, text: str) -> None:
        """Replace the bytes of an existing node (top-level or nested).

        Raises:
            StructuralEditError: If the range overlaps an earlier edit
        """
        self._add_edit(node.start_byte, node.end_byte, text)
        self.replacements += 1

    def insert_after(self, slot_id: int | None, text: str) -> None:
        """Insert a new top-level statement after a slot, or at the start.

        Statements sharing an anchor keep the order they were inserted in.
        """
        if slot_id is None:
            prologue = self.prologue_slot
            if prologue is not None:
                self.insert_after(prologue, text)
                return
            suffix = "\n\n" if self._document.source.strip() else "\n"
            self._add_edit(0, 0, text + suffix)
        else:
            position = self.slot(slot_id).insert_at
            self._add_edit(position, position, "\n\n" + text)
        self.additions += 1

    def insert_at(self, position: int, text: str) -> None:
        """Insert raw text at a byte offset (used for class bodies)."""
        self._add_edit(position, position, text)
        self.additions += 1

    def _add_edit(self, start: int, end: int, text: str) -> None:
        for edit in self._edits:
            if edit.is_insertion or start == end:
                if edit.start < start < edit.end or start < edit.start < end:
                    raise StructuralEditError(
                        f"Edit at {start} lands inside another edit ({edit.start}-{edit.end})"
                    )
            elif start < edit.end and edit.start < end:
                raise StructuralEditError(
                    f"Edit {start}-{end} overlaps another edit ({edit.start}-{edit.end})"
                )
        self._edits.append(_Edit(start, end, text, len(self._edits)))

    def render(self) -> str:
        """Produce the document text with every edit applied."""
        source = self._document.source
        pieces: list[bytes] = []
        cursor = 0
        for edit in sorted(self._edits, key=lambda e: (e.start, e.end, e.order)):
            pieces.append(source[cursor : edit.start])
            pieces.append(edit.text.encode("utf-8"))
            cursor = max(cursor, edit.end)
        pieces.append(source[cursor:])
        rendered = b"".join(pieces).decode("utf-8", errors="replace")
        log.debug(
            LogEventNames.DOCUMENT_REGENERATED,
            replacements=self.replacements,
            additions=self.additions,
            length=len(rendered),
        )
        return rendered
