"""
Build hook — decides, per module and per pass, build now or suspend.

Decision order:
    1. identity already needed          → build
    2. some reason kind not allowed     → mark needed, build
    3. otherwise                        → suspend

A suspension is handed back to the pipeline, which registers its build
completion callback on it. The hook schedules ``resume`` on the pass's
scheduler, so completion runs on a later tick of the same pass and the
module's real build work never happens.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from lazybuild.core.gate.needed import NeededModuleSet
from lazybuild.core.gate.protocols import CompilationLike, ModuleLike
from lazybuild.core.models.graph import SuspensionPolicy
from lazybuild.core.observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


class Suspension:
    """Pending build completion of one module in one pass."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        self.resumed = False
        self._continuations: list[Callable[[], Any]] = []

    def __repr__(self) -> str:
        return f"Suspension({self.identity!r}, pending={len(self._continuations)})"

    def add_continuation(self, callback: Callable[[], Any]) -> None:
        self._continuations.append(callback)

    def resume(self) -> None:
        continuations, self._continuations = self._continuations, []
        self.resumed = True
        for callback in continuations:
            callback()


class BuildHook:
    """``build_module`` tap shared by every unit of one gate."""

    def __init__(
        self,
        needed: NeededModuleSet,
        policy: SuspensionPolicy = SuspensionPolicy.DYNAMIC_OR_ENTRY,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.needed = needed
        self.policy = policy
        self.metrics = metrics or MetricsRegistry()
        self._lock = threading.Lock()
        self._pending = 0

    @property
    def pending_count(self) -> int:
        """Suspensions whose resume tick has not run yet."""
        with self._lock:
            return self._pending

    def is_eligible(self, module: ModuleLike) -> bool:
        """True if every incoming reason allows deferring the build.

        A module with no reasons at all is eligible.
        """
        return all(self.policy.allows(reason.kind) for reason in module.reasons)

    def __call__(self, module: ModuleLike, compilation: CompilationLike) -> Suspension | None:
        identity = module.identity
        if self.needed.is_needed(identity):
            return None

        if not self.is_eligible(module):
            if self.needed.mark(identity):
                logger.debug("Needed (static reason): %s", identity)
            return None

        suspension = Suspension(identity)
        with self._lock:
            self._pending += 1
        self.metrics.inc("gate.modules_suspended")
        self.metrics.add("gate.pending", 1)
        compilation.scheduler.call_soon(self._resume, suspension)
        logger.debug("Suspended build of %s", identity)
        return suspension

    def _resume(self, suspension: Suspension) -> None:
        with self._lock:
            self._pending -= 1
        self.metrics.add("gate.pending", -1)
        self.metrics.inc("gate.modules_resumed")
        suspension.resume()
