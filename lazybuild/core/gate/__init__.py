"""
Lazy compilation gate.

    from lazybuild.core.gate import LazyBuild
"""

from lazybuild.core.gate.dispatcher import RequestDispatcher
from lazybuild.core.gate.hook import BuildHook, Suspension
from lazybuild.core.gate.inspector import (
    ChunkInspector,
    GateError,
    RecompileTrigger,
    WatchingNotFoundError,
)
from lazybuild.core.gate.lazy_build import LazyBuild, LazyBuildPlugin
from lazybuild.core.gate.needed import NeededModuleSet, RequestedArtifactSet

__all__ = [
    "BuildHook",
    "ChunkInspector",
    "GateError",
    "LazyBuild",
    "LazyBuildPlugin",
    "NeededModuleSet",
    "RecompileTrigger",
    "RequestDispatcher",
    "RequestedArtifactSet",
    "Suspension",
    "WatchingNotFoundError",
]
