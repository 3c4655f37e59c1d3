"""Error-tolerant parsing of JavaScript/TypeScript source.

This module implements the SourceParser that turns file text into a
SourceDocument. It handles:
- Grammar selection (javascript, typescript, tsx) by file extension
- Detection of catastrophic parses (mostly ERROR nodes)
- Indexing the names the document declares at program level
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import PurePath

import structlog
import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from ai_code_patcher.config.schema import ParserConfig
from ai_code_patcher.core.declarations import DEFAULT_EXPORT_NAME
from ai_code_patcher.core.syntax import (
    CLASS_DECLARATION_TYPES,
    FUNCTION_DECLARATION_TYPES,
    TYPE_DECLARATION_TYPES,
    VARIABLE_TYPES,
    bound_names,
    declarators,
    declared_name,
    has_token,
    statements,
    text_of,
    walk,
)
from ai_code_patcher.utils.errors import SourceParseError
from ai_code_patcher.utils.logging import LogEventNames

log = structlog.get_logger()

EXTENSION_DIALECTS = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

SCRIPT_EXTENSIONS = frozenset(EXTENSION_DIALECTS)


@lru_cache(maxsize=None)
def get_language(dialect: str) -> Language:
    """Return the tree-sitter grammar for a dialect.

    Raises:
        ValueError: If the dialect is unknown
    """
    if dialect == "javascript":
        return Language(tree_sitter_javascript.language())
    if dialect == "typescript":
        return Language(tree_sitter_typescript.language_typescript())
    if dialect == "tsx":
        return Language(tree_sitter_typescript.language_tsx())
    raise ValueError(f"Unknown dialect: {dialect}")


def dialect_for(file_name: str | None, default: str = "tsx") -> str:
    """Pick the grammar for a file name, falling back to default."""
    if not file_name:
        return default
    return EXTENSION_DIALECTS.get(PurePath(file_name).suffix.lower(), default)


def is_script_file(file_name: str | None) -> bool:
    """True for file names the syntax-tree engine can handle."""
    if not file_name:
        return False
    return PurePath(file_name).suffix.lower() in SCRIPT_EXTENSIONS


def parse_tree(text: str, dialect: str) -> Tree:
    """Parse text with the dialect's grammar, without any validation."""
    parser = Parser(get_language(dialect))
    return parser.parse(text.encode("utf-8"))


def error_ratio(root: Node, source: bytes) -> float:
    """Share of non-blank source bytes covered by outermost ERROR nodes."""
    total = _non_blank(source)
    if total == 0:
        return 0.0
    covered = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR":
            covered += _non_blank(source[node.start_byte : node.end_byte])
            continue
        stack.extend(node.children)
    return covered / total


def _non_blank(chunk: bytes) -> int:
    return len(b"".join(chunk.split()))


def collect_identifiers(root: Node) -> set[str]:
    """Return the names the file declares at program level.

    Covers imported bindings, variable declarators (destructured names
    included), function, class and TypeScript type declarations, exported
    specifiers and default-exported identifiers, looking through `export`.
    Locals inside bodies and class members are not program-level names.
    """
    names: set[str] = set()
    for statement in statements(root):
        names.update(_statement_names(statement))
    return names


def _statement_names(statement: Node) -> list[str]:
    node_type = statement.type
    if node_type == "export_statement":
        declaration = statement.child_by_field_name("declaration")
        if declaration is not None:
            return _statement_names(declaration)
        names = []
        for node in walk(statement):
            if node.type == "export_specifier":
                alias = node.child_by_field_name("alias") or node.child_by_field_name("name")
                if alias is not None:
                    names.append(text_of(alias))
        if has_token(statement, "default"):
            value = statement.child_by_field_name("value")
            if value is not None and value.type == "identifier":
                names.append(text_of(value))
            else:
                names.append(DEFAULT_EXPORT_NAME)
        return names
    if node_type == "import_statement":
        return _import_names(statement)
    if node_type in VARIABLE_TYPES:
        return [name for declarator in declarators(statement) for name in bound_names(declarator)]
    if (
        node_type in FUNCTION_DECLARATION_TYPES
        or node_type in CLASS_DECLARATION_TYPES
        or node_type in TYPE_DECLARATION_TYPES
    ):
        name = declared_name(statement)
        return [name] if name else []
    return []


def _import_names(statement: Node) -> list[str]:
    names = []
    for node in walk(statement):
        if node.type == "import_specifier":
            local = node.child_by_field_name("alias") or node.child_by_field_name("name")
            if local is not None:
                names.append(text_of(local))
        elif node.type in ("import_clause", "namespace_import"):
            names.extend(
                text_of(child) for child in node.named_children if child.type == "identifier"
            )
    return names


@dataclass
class SourceDocument:
    """A parsed file plus the facts derived from it.

    Created once per patch attempt and discarded afterwards.
    """

    text: str
    source: bytes
    tree: Tree
    dialect: str
    identifiers: set[str] = field(default_factory=set)

    @property
    def root(self) -> Node:
        """The program node."""
        return self.tree.root_node

    @property
    def line_count(self) -> int:
        """Number of lines in the document."""
        return self.text.count("\n") + 1

    def slice(self, start_byte: int, end_byte: int) -> str:
        """Return the text between two byte offsets."""
        return self.source[start_byte:end_byte].decode("utf-8", errors="replace")


class SourceParser:
    """Parser for JavaScript/TypeScript files.

    Responsibilities:
    - Choose the grammar for a file
    - Parse with error recovery and reject catastrophic results
    - Build the declared-identifier index

    Example:
        parser = SourceParser()
        document = parser.parse(text, file_name="widget.tsx")
        if "formatPrice" in document.identifiers:
            ...
    """

    def __init__(self, config: ParserConfig | None = None) -> None:
        """Initialize the parser.

        Args:
            config: Parser configuration (defaults apply when None)
        """
        self._config = config or ParserConfig()

    @property
    def default_dialect(self) -> str:
        """Dialect used when the file name gives no hint."""
        return self._config.default_dialect

    def dialect_for(self, file_name: str | None) -> str:
        """Pick the grammar for a file name."""
        return dialect_for(file_name, self._config.default_dialect)

    def parse(
        self,
        text: str,
        file_name: str | None = None,
        dialect: str | None = None,
    ) -> SourceDocument:
        """Parse a whole file.

        Args:
            text: File content
            file_name: Used to pick the grammar when dialect is None
            dialect: Explicit grammar name

        Returns:
            SourceDocument for the text

        Raises:
            SourceParseError: If the tree is unusable
        """
        dialect = dialect or self.dialect_for(file_name)
        tree = parse_tree(text, dialect)
        source = text.encode("utf-8")
        root = tree.root_node

        if root.type == "ERROR":
            raise SourceParseError("Source could not be parsed at all", error_ratio=1.0)

        ratio = error_ratio(root, source)
        if ratio > self._config.max_error_ratio:
            log.warning(
                LogEventNames.SOURCE_PARSE_ERROR,
                file_name=file_name,
                dialect=dialect,
                error_ratio=round(ratio, 3),
            )
            raise SourceParseError(
                f"Source is mostly unparseable ({ratio:.0%} inside syntax errors)",
                error_ratio=ratio,
            )

        document = SourceDocument(
            text=text,
            source=source,
            tree=tree,
            dialect=dialect,
            identifiers=collect_identifiers(root),
        )
        log.debug(
            LogEventNames.SOURCE_PARSED,
            file_name=file_name,
            dialect=dialect,
            has_errors=root.has_error,
            identifiers=len(document.identifiers),
        )
        return document
