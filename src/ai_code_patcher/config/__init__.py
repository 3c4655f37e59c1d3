"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    FallbackConfig,
    FormattingConfig,
    LoggingConfig,
    ParserConfig,
    PatcherConfig,
    PlannerConfig,
    SegmenterConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "PatcherConfig",
    # Sections
    "ParserConfig",
    "SegmenterConfig",
    "PlannerConfig",
    "FormattingConfig",
    "FallbackConfig",
    "LoggingConfig",
]
