"""
Configuration loader — reads lazybuild.yml into config models.

Reads YAML, validates against the pydantic schema, and resolves
relative paths against the directory holding the config file.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from lazybuild.core.models.config import LazyBuildConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "lazybuild.yml"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for lazybuild.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to lazybuild.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> LazyBuildConfig:
    """Load and validate the build configuration.

    Args:
        path: Explicit path to lazybuild.yml. If None, searches upward.

    Returns:
        Validated config with unit contexts and output paths made absolute.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(f"No {CONFIG_FILE} found. Specify one with --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = LazyBuildConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    _resolve_paths(config, path.parent.resolve())
    logger.info("Loaded config '%s' with %d unit(s)", config.name, len(config.units))
    return config


def _resolve_paths(config: LazyBuildConfig, base: Path) -> None:
    """Make the project context, unit contexts and output paths absolute."""
    context = (base / config.context).resolve()
    config.context = context.as_posix()
    for unit in config.units:
        if "context" not in unit.model_fields_set:
            unit.context = config.context
        else:
            unit.context = (context / unit.context).resolve().as_posix()
        unit.output.path = (base / unit.output.path).resolve().as_posix()
