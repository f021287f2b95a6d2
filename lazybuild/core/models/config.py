"""
Configuration models — loaded from lazybuild.yml.

One ``UnitConfig`` per build unit. A config with several units runs
them as a swarm: each unit is watched and invalidated on its own.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from lazybuild.core.models.graph import SuspensionPolicy

DEFAULT_ENTRY_NAME = "main"


class OutputConfig(BaseModel):
    """Where and under which names a unit emits its files."""

    path: str = "/"
    filename: str = "[name].js"
    chunk_filename: str | None = None
    public_path: str = "/"

    def resolved_chunk_filename(self) -> str:
        """File name pattern for async chunks.

        Defaults to ``filename`` with ``[name]`` swapped for ``[id]``, or
        ``[id].<filename>`` when the pattern has no ``[name]``.
        """
        if self.chunk_filename:
            return self.chunk_filename
        if "[name]" in self.filename:
            return self.filename.replace("[name]", "[id]")
        return f"[id].{self.filename}"


class UnitConfig(BaseModel):
    """One independently watched build unit."""

    name: str = DEFAULT_ENTRY_NAME
    entry: str | list[str] | dict[str, str | list[str]]
    context: str = "/"
    output: OutputConfig = Field(default_factory=OutputConfig)
    asset_extensions: list[str] = Field(default_factory=lambda: [".css"])
    loaders: list[str] = Field(default_factory=list)   # "pkg.module:function"

    @field_validator("entry")
    @classmethod
    def _entry_not_empty(cls, value: str | list[str] | dict) -> str | list[str] | dict:
        if not value:
            raise ValueError("entry must not be empty")
        return value

    def entries(self) -> dict[str, list[str]]:
        """Normalize ``entry`` to ``{chunk name: [requests]}``."""
        if isinstance(self.entry, str):
            return {DEFAULT_ENTRY_NAME: [self.entry]}
        if isinstance(self.entry, list):
            return {DEFAULT_ENTRY_NAME: list(self.entry)}
        return {
            name: [reqs] if isinstance(reqs, str) else list(reqs)
            for name, reqs in self.entry.items()
        }


class GateConfig(BaseModel):
    """Lazy compilation gate settings."""

    enabled: bool = True
    policy: SuspensionPolicy = SuspensionPolicy.DYNAMIC_OR_ENTRY


class WatchConfig(BaseModel):
    poll_interval: float = Field(default=0.5, gt=0)


class ServerConfig(BaseModel):
    """Development artifact server."""

    host: str = "127.0.0.1"
    port: int = 8080
    public_path: str | None = None      # overrides the public path of a single unit
    wait_timeout: float = Field(default=60.0, gt=0)


class LazyBuildConfig(BaseModel):
    """Root configuration — loaded from lazybuild.yml."""

    name: str = "lazybuild"
    context: str = "."
    gate: GateConfig = Field(default_factory=GateConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    units: list[UnitConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_unit_names(self) -> LazyBuildConfig:
        seen: set[str] = set()
        for unit in self.units:
            if unit.name in seen:
                raise ValueError(f"duplicate unit name '{unit.name}'")
            seen.add(unit.name)
        return self

    @model_validator(mode="after")
    def _public_path_override_single_unit(self) -> LazyBuildConfig:
        if self.server.public_path is not None and len(self.units) > 1:
            raise ValueError(
                "server.public_path applies to single-unit configs only; "
                "set output.public_path on each unit instead"
            )
        return self

    def get_unit(self, name: str) -> UnitConfig | None:
        """Look up a unit by name."""
        for unit in self.units:
            if unit.name == name:
                return unit
        return None
