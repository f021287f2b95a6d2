"""
Chunk inspection and scoped recompiles.

``ChunkInspector.inspect`` finds the unit whose output directory holds a
requested file, marks every module of every chunk emitting that file as
needed, and asks ``RecompileTrigger`` to rebuild exactly that unit.

Recompile sequence for one unit:
    1. find the unit's own watching      by compiler identity
    2. park the active watcher           paused, kept in paused_watcher
    3. install the watcher's times       as the unit's timestamp baseline
    4. server.invalidate_state()         response waits for the new pass
    5. watching.invalidate()             fire-and-forget
Steps 2 and 3 hold ``watching.lock``. A failed lookup leaves the
server's validity untouched.
"""

from __future__ import annotations

import logging
from typing import Sequence

from lazybuild.core.gate.needed import NeededModuleSet
from lazybuild.core.gate.protocols import ArtifactServer, BuildUnit, SnapshotLike
from lazybuild.core.observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


class GateError(Exception):
    """Base class for gate failures."""


class WatchingNotFoundError(GateError):
    """A unit that must be recompiled has no watch loop or watcher."""


class RecompileTrigger:
    """Invalidates one build unit without touching its siblings."""

    def __init__(self, metrics: MetricsRegistry | None = None) -> None:
        self.metrics = metrics or MetricsRegistry()

    def trigger(self, server: ArtifactServer, compiler: BuildUnit) -> None:
        """Schedule a new pass of ``compiler`` and return immediately.

        Raises:
            WatchingNotFoundError: no watching belongs to ``compiler``, or
                it has neither an active nor a parked watcher.
        """
        watching = next((w for w in server.watching.watchings if w.compiler is compiler), None)
        if watching is None:
            logger.error("No watching found for build unit '%s'", compiler.name)
            raise WatchingNotFoundError(f"No watching found for build unit '{compiler.name}'")

        with watching.lock:
            active = watching.watcher
            if active is not None:
                active.pause()
                if watching.paused_watcher is not None:
                    watching.paused_watcher.close()
                watching.paused_watcher = active
                watching.watcher = None
            source = watching.paused_watcher
            if source is None:
                logger.error("Build unit '%s' has no watcher to park", compiler.name)
                raise WatchingNotFoundError(f"Build unit '{compiler.name}' has no active watcher")

            times = source.get_times()
            compiler.file_timestamps = times
            compiler.context_timestamps = dict(times)

        self.metrics.inc("gate.recompiles", unit=compiler.name)
        logger.info("Recompiling build unit '%s' (%d known file times)", compiler.name, len(times))
        server.invalidate_state()
        watching.invalidate()


class ChunkInspector:
    """Marks the modules behind a requested file as needed."""

    def __init__(
        self,
        needed: NeededModuleSet,
        trigger: RecompileTrigger,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.needed = needed
        self.trigger = trigger
        self.metrics = metrics or MetricsRegistry()

    def inspect(
        self,
        artifact_path: str,
        snapshots: Sequence[SnapshotLike],
        server: ArtifactServer,
    ) -> bool:
        """Inspect ``artifact_path`` against each unit's snapshot.

        The first snapshot with a chunk emitting the file wins. Returns
        True iff a recompile of that snapshot's unit was scheduled, which
        happens when marking added a new identity or when one of the
        chunk's modules is still suspended in that snapshot.
        """
        self.metrics.inc("gate.inspections")

        for snapshot in snapshots:
            compilation = snapshot.compilation
            output_path = compilation.output_path
            if not output_path.endswith("/"):
                output_path += "/"
            if not artifact_path.startswith(output_path):
                continue

            chunk_file = artifact_path[len(output_path):]
            chunks = [chunk for chunk in compilation.chunks if chunk_file in chunk.files]
            if not chunks:
                continue

            modules = [module for chunk in chunks for module in chunk.iter_modules()]
            added = self.needed.mark_all(module.identity for module in modules)
            # Needed through another unit but still deferred in this snapshot
            deferred = [module.identity for module in modules if module.suspended]
            unit = compilation.compiler
            if not added and not deferred:
                logger.debug("%s: all modules already built in unit '%s'", artifact_path, unit.name)
                return False

            if added:
                self.metrics.inc("gate.modules_marked", len(added))
                logger.debug("%s: marked %d module(s) needed: %s", artifact_path, len(added), added)
            if deferred:
                logger.debug("%s: %d module(s) still suspended in unit '%s'", artifact_path, len(deferred), unit.name)
            self.trigger.trigger(server, unit)
            return True

        logger.debug("%s: no chunk emits this file", artifact_path)
        return False
