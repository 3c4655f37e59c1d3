"""Tests for the source parser and identifier index."""

import pytest

from ai_code_patcher.config.schema import ParserConfig
from ai_code_patcher.core.declarations import DEFAULT_EXPORT_NAME
from ai_code_patcher.core.source_parser import (
    SourceParser,
    dialect_for,
    error_ratio,
    is_script_file,
    parse_tree,
)
from ai_code_patcher.utils.errors import SourceParseError


class TestDialectSelection:
    """Tests for grammar selection by file name."""

    @pytest.mark.parametrize(
        ("file_name", "dialect"),
        [
            ("app.js", "javascript"),
            ("component.jsx", "javascript"),
            ("loader.mjs", "javascript"),
            ("service.ts", "typescript"),
            ("Widget.TSX", "tsx"),
        ],
    )
    def test_extension_mapping(self, file_name: str, dialect: str) -> None:
        """Test that known extensions map to their grammar."""
        assert dialect_for(file_name) == dialect

    def test_unknown_extension_uses_default(self) -> None:
        """Test the fallback dialect."""
        assert dialect_for("notes.txt") == "tsx"
        assert dialect_for(None, default="javascript") == "javascript"

    def test_parser_uses_configured_default(self) -> None:
        """Test that ParserConfig.default_dialect applies."""
        parser = SourceParser(ParserConfig(default_dialect="typescript"))
        assert parser.dialect_for("README") == "typescript"

    def test_is_script_file(self) -> None:
        """Test script file detection."""
        assert is_script_file("index.ts")
        assert not is_script_file("index.html")
        assert not is_script_file(None)


class TestParse:
    """Tests for SourceParser.parse."""

    def test_parse_clean_source(self, parser: SourceParser) -> None:
        """Test parsing a valid module."""
        document = parser.parse("const a = 1;\nfunction b() {}\n", file_name="app.js")
        assert document.dialect == "javascript"
        assert document.root.type == "program"
        assert not document.root.has_error
        assert document.line_count == 3

    def test_parse_typescript(self, parser: SourceParser) -> None:
        """Test that TypeScript syntax parses with the TypeScript grammar."""
        document = parser.parse(
            "interface Props { label: string }\nconst x: number = 1;\n",
            file_name="types.ts",
        )
        assert not document.root.has_error
        assert {"Props", "x"} <= document.identifiers

    def test_partial_errors_are_tolerated(self, parser: SourceParser) -> None:
        """Test that a few broken lines do not reject the file."""
        text = (
            "function ok() {\n  return 1;\n}\n"
            "const values = [1, 2, 3];\n"
            "function alsoOk() {\n  return values.length;\n}\n"
            "let broken = ;\n"
        )
        document = parser.parse(text, file_name="app.js")
        assert "ok" in document.identifiers

    def test_mostly_broken_source_rejected(self) -> None:
        """Test that a catastrophic parse raises SourceParseError."""
        parser = SourceParser(ParserConfig(max_error_ratio=0.1))
        with pytest.raises(SourceParseError) as exc_info:
            parser.parse("}{ ) ( ]]] === ;;; {{{ )))", file_name="app.js")
        assert exc_info.value.error_ratio is not None

    def test_empty_source(self, parser: SourceParser) -> None:
        """Test that an empty file parses to an empty program."""
        document = parser.parse("", file_name="app.js")
        assert document.identifiers == set()
        assert document.root.named_child_count == 0

    def test_slice(self, parser: SourceParser) -> None:
        """Test slicing by byte offsets, including non-ASCII text."""
        document = parser.parse("const s = 'é';\nconst t = 2;\n", file_name="app.js")
        second = document.root.named_children[1]
        assert document.slice(second.start_byte, second.end_byte) == "const t = 2;"


class TestErrorRatio:
    """Tests for error_ratio."""

    def test_clean_source_has_zero_ratio(self) -> None:
        """Test a source without ERROR nodes."""
        source = b"const a = 1;"
        tree = parse_tree(source.decode(), "javascript")
        assert error_ratio(tree.root_node, source) == 0.0

    def test_blank_source(self) -> None:
        """Test that blank text has a zero ratio."""
        tree = parse_tree("   \n", "javascript")
        assert error_ratio(tree.root_node, b"   \n") == 0.0


class TestCollectIdentifiers:
    """Tests for the declared-identifier index."""

    def test_collects_declarations(self, parse) -> None:
        """Test imports, variables, functions, classes and exports."""
        document = parse(
            "import { helper } from './helper';\n"
            "const a = 1, b = 2;\n"
            "let { c } = obj;\n"
            "function run() {}\n"
            "class Widget {\n"
            "  label = 'x';\n"
            "  render() {}\n"
            "}\n"
            "export { run as start };\n"
        )
        assert {"helper", "a", "b", "c", "run", "Widget", "start"} <= document.identifiers
        assert "label" not in document.identifiers
        assert "render" not in document.identifiers

    def test_function_locals_not_indexed(self, parse) -> None:
        """Test that names declared inside a function body stay out of the index."""
        document = parse("function a() {\n  const helper = 1;\n  return helper;\n}\n")
        assert "a" in document.identifiers
        assert "helper" not in document.identifiers

    def test_default_export_identifier(self, parse) -> None:
        """Test that `export default Name` indexes Name."""
        assert "Widget" in parse("class Widget {}\nexport default Widget;\n").identifiers

    def test_anonymous_default_export(self, parse) -> None:
        """Test that an anonymous default export gets the sentinel name."""
        document = parse("export default () => 1;\n")
        assert DEFAULT_EXPORT_NAME in document.identifiers
