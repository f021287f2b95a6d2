"""
Config check use case — validate lazybuild.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from lazybuild.core.config.loader import ConfigError, find_config_file, load_config
from lazybuild.core.models.config import LazyBuildConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: LazyBuildConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "name": self.config.name if self.config else None,
            "unit_count": len(self.config.units) if self.config else 0,
            "gate": (
                {"enabled": self.config.gate.enabled, "policy": str(self.config.gate.policy)}
                if self.config else None
            ),
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the build configuration and report issues.

    Args:
        config_path: Optional explicit path to lazybuild.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    from lazybuild.adapters.bundler.loaders import load_loaders

    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No lazybuild.yml found.")
        return result
    result.config_path = config_path

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config

    for unit in config.units:
        if not Path(unit.context).is_dir():
            result.warnings.append(f"Unit '{unit.name}' context does not exist: {unit.context}")

        for name, requests in unit.entries().items():
            for req in requests:
                if not req.startswith(("./", "../", "/")):
                    result.errors.append(
                        f"Unit '{unit.name}' entry '{name}': '{req}' is not a relative or absolute path"
                    )

        pattern = unit.output.resolved_chunk_filename()
        if "[id]" not in pattern and "[name]" not in pattern:
            result.errors.append(
                f"Unit '{unit.name}' chunk_filename '{pattern}' has no [id] or [name]; "
                "async chunks would overwrite each other"
            )

        try:
            load_loaders(unit.loaders)
        except ConfigError as e:
            result.errors.append(f"Unit '{unit.name}': {e}")

    # A requested file is matched to the first unit whose output path prefixes it
    outputs = [(u.name, u.output.path.rstrip("/") + "/") for u in config.units]
    for i, (name_a, path_a) in enumerate(outputs):
        for name_b, path_b in outputs[i + 1:]:
            if path_a.startswith(path_b) or path_b.startswith(path_a):
                result.warnings.append(
                    f"Units '{name_a}' and '{name_b}' have overlapping output paths "
                    f"({path_a}, {path_b})"
                )

    if not config.gate.enabled:
        result.warnings.append("Gate is disabled: every module is built eagerly.")

    result.valid = len(result.errors) == 0
    return result
