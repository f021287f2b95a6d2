"""
Interfaces the gate is written against.

Any build pipeline and artifact server that satisfy these shapes can be
gated; ``lazybuild.adapters.bundler`` and ``lazybuild.ui.web.dev_server``
are the reference implementations.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator, Protocol, Sequence

from lazybuild.core.models.graph import ModuleReason

# (request URL) -> output file path | None
ResolveFn = Callable[[str], "str | None"]


class ModuleLike(Protocol):
    @property
    def identity(self) -> str: ...

    @property
    def suspended(self) -> bool: ...

    reasons: list[ModuleReason]


class ChunkLike(Protocol):
    files: list[str]

    def iter_modules(self) -> Iterator[ModuleLike]: ...


class Scheduler(Protocol):
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None: ...


class CompilationLike(Protocol):
    compiler: BuildUnit
    chunks: Sequence[ChunkLike]
    scheduler: Scheduler

    @property
    def output_path(self) -> str: ...


class SnapshotLike(Protocol):
    """Stats of one unit's completed pass."""

    compilation: CompilationLike


class SnapshotGroup(Protocol):
    """Stats of a unit or swarm, flattened to one entry per unit."""

    @property
    def stats(self) -> Sequence[SnapshotLike]: ...


class WatcherLike(Protocol):
    def get_times(self) -> dict[str, float]: ...

    def pause(self) -> None: ...

    def close(self) -> None: ...


class BuildUnit(Protocol):
    name: str
    file_timestamps: dict[str, float]
    context_timestamps: dict[str, float]


class WatchingLike(Protocol):
    compiler: BuildUnit
    lock: threading.RLock
    watcher: WatcherLike | None
    paused_watcher: WatcherLike | None

    def invalidate(self) -> None: ...


class WatchingGroup(Protocol):
    @property
    def watchings(self) -> Sequence[WatchingLike]: ...


class ArtifactServer(Protocol):
    """Downstream server that owns validity and serves files."""

    watching: WatchingGroup

    def invalidate_state(self) -> None: ...

    def wait_until_valid(self, timeout: float | None = None) -> SnapshotGroup | None: ...

    def resolve(self, url: str) -> str | None: ...

