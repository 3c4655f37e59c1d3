"""Core patching components.

This module exports the main classes:
- PatchEngine: Orchestrates one patch attempt and the strategy cascade
- FixService: Routes a fix to the engine or to direct text replacement
- SourceParser: Parses JavaScript/TypeScript files with tree-sitter
- ErrorLocator: Maps an error line to its surrounding nodes
- SnippetSegmenter: Splits AI snippets into candidate declarations
- PatchPlanner: Decides add / replace / skip per candidate
"""

from ai_code_patcher.core.engine import PatchEngine, default_strategies
from ai_code_patcher.core.error_locator import ErrorLocator
from ai_code_patcher.core.fix_service import FixService
from ai_code_patcher.core.patch_planner import PatchPlanner
from ai_code_patcher.core.snippet_segmenter import SnippetSegmenter
from ai_code_patcher.core.source_parser import SourceDocument, SourceParser

__all__ = [
    "ErrorLocator",
    "FixService",
    "PatchEngine",
    "PatchPlanner",
    "SnippetSegmenter",
    "SourceDocument",
    "SourceParser",
    "default_strategies",
]
