"""
LazyBuild — one gate instance and its two integration points.

    gate = LazyBuild()
    compiler.apply(gate.create_plugin())          # build side
    middleware = gate.create_middleware(server)   # HTTP side

Everything that must survive rebuilds (needed modules, requested
artifacts) lives on the instance; units and servers are stateless
collaborators from the gate's point of view.
"""

from __future__ import annotations

import logging
from typing import Any

from lazybuild.core.gate.dispatcher import RequestDispatcher
from lazybuild.core.gate.hook import BuildHook
from lazybuild.core.gate.inspector import ChunkInspector, RecompileTrigger
from lazybuild.core.gate.needed import NeededModuleSet, RequestedArtifactSet
from lazybuild.core.gate.protocols import ArtifactServer, ResolveFn
from lazybuild.core.models.graph import SuspensionPolicy
from lazybuild.core.observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


class LazyBuildPlugin:
    """Taps the build hook into every compilation of every unit."""

    name = "LazyBuildPlugin"

    def __init__(self, hook: BuildHook) -> None:
        self.hook = hook

    def apply(self, compiler: Any) -> None:
        for unit in compiler.compilers:
            unit.hooks.compilation.tap(self.name, self._on_compilation)
            logger.debug("Lazy build attached to unit '%s'", unit.name)

    def _on_compilation(self, compilation: Any) -> None:
        compilation.hooks.build_module.tap(self.name, self.hook)


class LazyBuild:
    def __init__(
        self,
        policy: SuspensionPolicy = SuspensionPolicy.DYNAMIC_OR_ENTRY,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.policy = policy
        self.metrics = metrics or MetricsRegistry()
        self.needed = NeededModuleSet()
        self.requested = RequestedArtifactSet()
        self.hook = BuildHook(self.needed, policy, self.metrics)
        self.trigger = RecompileTrigger(self.metrics)
        self.inspector = ChunkInspector(self.needed, self.trigger, self.metrics)

    def create_plugin(self) -> LazyBuildPlugin:
        return LazyBuildPlugin(self.hook)

    def create_middleware(
        self, server: ArtifactServer, resolve: ResolveFn | None = None,
    ) -> RequestDispatcher:
        """Middleware bound to ``server``; ``resolve`` defaults to ``server.resolve``."""
        return RequestDispatcher(server, self.inspector, self.requested, resolve)

    def status(self) -> dict[str, Any]:
        return {
            "policy": str(self.policy),
            "needed_modules": sorted(self.needed.snapshot()),
            "pending_suspensions": self.hook.pending_count,
            "metrics": self.metrics.to_dict(),
        }
