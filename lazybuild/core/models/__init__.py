"""
Domain models — configuration and build graph types.

    from lazybuild.core.models import UnitConfig, Module, Chunk
"""

from lazybuild.core.models.config import (
    GateConfig,
    LazyBuildConfig,
    OutputConfig,
    ServerConfig,
    UnitConfig,
    WatchConfig,
)
from lazybuild.core.models.graph import (
    Chunk,
    Dependency,
    DependencyKind,
    Module,
    ModuleReason,
    SuspensionPolicy,
)

__all__ = [
    # graph.py
    "Chunk",
    "Dependency",
    "DependencyKind",
    # config.py
    "GateConfig",
    "LazyBuildConfig",
    "Module",
    "ModuleReason",
    "OutputConfig",
    "ServerConfig",
    "SuspensionPolicy",
    "UnitConfig",
    "WatchConfig",
]
