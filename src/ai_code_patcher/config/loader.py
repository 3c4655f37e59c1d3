"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from ..utils.errors import ConfigurationError
from .schema import PatcherConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path | None = None) -> PatcherConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Without a path the defaults (plus any AI_CODE_PATCHER_* environment
    overrides) are returned.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated PatcherConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
        ConfigurationError: If the file is not a mapping or options contradict
    """
    if path is None:
        config = PatcherConfig()
        validate_config(config)
        return config

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    config_dict = yaml.safe_load(substitute_env_vars(raw_yaml)) or {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")

    # Fields absent from the file still come from AI_CODE_PATCHER_* variables
    config = PatcherConfig(**config_dict)
    validate_config(config)
    return config


def validate_config(config: PatcherConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ConfigurationError: If options contradict each other
    """
    fallback = config.fallback
    explicit_stub = "synthesize_stub" in fallback.model_fields_set and fallback.synthesize_stub
    if explicit_stub and not fallback.enable_fallback_fix:
        raise ConfigurationError("synthesize_stub requires enable_fallback_fix")
