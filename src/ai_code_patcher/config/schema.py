"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Dialect = Literal["javascript", "typescript", "tsx"]


class ParserConfig(BaseModel):
    """Source parsing configuration."""

    default_dialect: Dialect = "tsx"
    max_error_ratio: float = Field(
        0.5,
        ge=0.0,
        le=1.0,
        description="Share of non-blank source allowed inside ERROR nodes",
    )


class SegmenterConfig(BaseModel):
    """Snippet segmentation configuration."""

    max_slice_attempts: int = Field(
        3,
        ge=1,
        le=10,
        description="Failed parses of one accumulated slice before it is discarded",
    )


class PlannerConfig(BaseModel):
    """Patch planning configuration."""

    relevance: Literal["permissive", "strict"] = "permissive"


class FormattingConfig(BaseModel):
    """Output formatting configuration."""

    indent: str = "  "

    @field_validator("indent")
    @classmethod
    def validate_indent(cls, v: str) -> str:
        """Validate that the indent unit is non-empty whitespace."""
        if not v or v.strip(" \t"):
            raise ValueError("Indent must be one or more spaces or tabs")
        return v


class FallbackConfig(BaseModel):
    """Text-level fallback strategy configuration."""

    enable_class_member_fix: bool = True
    enable_custom_fix: bool = True
    enable_fallback_fix: bool = True
    synthesize_stub: bool = True


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("~/.cache/ai-code-patcher/patcher.log").expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class PatcherConfig(BaseSettings):
    """Root configuration for AI Code Patcher."""

    parser: ParserConfig = ParserConfig()
    segmenter: SegmenterConfig = SegmenterConfig()
    planner: PlannerConfig = PlannerConfig()
    formatting: FormattingConfig = FormattingConfig()
    fallback: FallbackConfig = FallbackConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="AI_CODE_PATCHER_",
        env_nested_delimiter="__",
    )
