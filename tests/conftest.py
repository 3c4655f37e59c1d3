"""Shared test fixtures for AI Code Patcher."""

import pytest

from ai_code_patcher.adapters.clipboard.memory import InMemoryClipboard
from ai_code_patcher.config.schema import PatcherConfig
from ai_code_patcher.core.engine import PatchEngine
from ai_code_patcher.core.source_parser import SourceDocument, SourceParser


@pytest.fixture
def config() -> PatcherConfig:
    """Return a default configuration."""
    return PatcherConfig()


@pytest.fixture
def parser() -> SourceParser:
    """Return a source parser with default settings."""
    return SourceParser()


@pytest.fixture
def parse(parser: SourceParser):
    """Return a helper that parses text as a JavaScript file."""

    def _parse(text: str, file_name: str = "app.js") -> SourceDocument:
        return parser.parse(text, file_name=file_name)

    return _parse


@pytest.fixture
def clipboard() -> InMemoryClipboard:
    """Return a clipboard that records copied text."""
    return InMemoryClipboard()


@pytest.fixture
def engine(config: PatcherConfig, clipboard: InMemoryClipboard) -> PatchEngine:
    """Return a patch engine wired to the in-memory clipboard."""
    return PatchEngine(config, clipboard=clipboard)


@pytest.fixture
def widget_source() -> str:
    """A small class-based module."""
    return (
        "class Widget {\n"
        "  render() {\n"
        "    return this.label;\n"
        "  }\n"
        "}\n"
        "\n"
        "export default Widget;\n"
    )


@pytest.fixture
def pricing_source() -> str:
    """A module with a variable, a function and a missing helper."""
    return (
        "import { round } from './math';\n"
        "\n"
        "const TAX = 0.2;\n"
        "\n"
        "function total(price) {\n"
        "  return formatPrice(round(price * (1 + TAX)));\n"
        "}\n"
        "\n"
        "export { total };\n"
    )
