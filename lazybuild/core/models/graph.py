"""
Build graph model — modules, reasons, and chunks of one compilation pass.

These objects are ephemeral: the pipeline discards and recreates them on
every pass. Only a module's ``identity`` is stable across passes, which
is what lets the gate remember which modules have been asked for.

Edge kinds
──────────
    NORMAL          static import / require — needed at load time
    DYNAMIC_IMPORT  ``import("./x")`` — the consumer may load it later
    ENTRY           configured entry point of a build unit
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterator


class DependencyKind(StrEnum):
    """Kind tag on a dependency edge."""

    NORMAL = "normal"
    DYNAMIC_IMPORT = "dynamic-import"
    ENTRY = "entry"


class SuspensionPolicy(StrEnum):
    """Which incoming edge kinds allow a module's build to be deferred.

    A module is eligible for suspension only if *every* incoming reason
    has an allowed kind.
    """

    DYNAMIC_ONLY = "dynamic-only"
    DYNAMIC_OR_ENTRY = "dynamic-or-entry"

    def allows(self, kind: DependencyKind) -> bool:
        if kind == DependencyKind.DYNAMIC_IMPORT:
            return True
        if kind == DependencyKind.ENTRY:
            return self == SuspensionPolicy.DYNAMIC_OR_ENTRY
        return False


@dataclass(frozen=True)
class ModuleReason:
    """Directed edge from a consumer (module or entry) to a module."""

    origin: str | None          # consumer identity; None for entries
    kind: DependencyKind
    request: str = ""           # request string as written by the consumer


@dataclass
class Dependency:
    """An outgoing request found in a module's source."""

    request: str
    kind: DependencyKind
    chunk_name: str | None = None       # from a chunkName comment
    resolved: str | None = None         # filled in by the compilation


@dataclass(eq=False)
class Module:
    """A unit of source inside one compilation.

    ``resource`` is the file path. Modules with no backing file carry a
    ``synthetic_id`` instead; either way ``identity`` is the stable key.
    """

    resource: str | None
    type: str = "javascript"                # "javascript" | "asset"
    synthetic_id: str = ""
    reasons: list[ModuleReason] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    source: str | None = None
    build_meta: dict[str, Any] = field(default_factory=dict)
    build_timestamp: float = 0.0
    emitted_files: dict[str, bytes] = field(default_factory=dict)
    error: str = ""

    @property
    def identity(self) -> str:
        if self.resource is not None:
            return self.resource
        return self.synthetic_id

    @property
    def suspended(self) -> bool:
        return bool(self.build_meta.get("suspended"))

    @property
    def built(self) -> bool:
        return "suspended" in self.build_meta and not self.suspended

    def add_reason(self, reason: ModuleReason) -> bool:
        """Record an incoming edge. Returns False for a duplicate."""
        if reason in self.reasons:
            return False
        self.reasons.append(reason)
        return True

    def reset_build(self) -> None:
        """Forget the result of a previous build step."""
        self.dependencies = []
        self.source = None
        self.build_meta = {}
        self.build_timestamp = 0.0
        self.emitted_files = {}
        self.error = ""

    def needs_rebuild(self, file_timestamps: dict[str, float]) -> bool:
        """Whether a cached build of this module is out of date.

        Unknown timestamps always force a rebuild.
        """
        if not self.built or self.error:
            return True
        if self.resource is None:
            return False
        ts = file_timestamps.get(self.resource)
        return ts is None or ts >= self.build_timestamp

    def reuse(self) -> Module:
        """Copy the build result into a fresh module for a new pass."""
        return Module(
            resource=self.resource,
            type=self.type,
            synthetic_id=self.synthetic_id,
            dependencies=[
                Dependency(d.request, d.kind, d.chunk_name, d.resolved)
                for d in self.dependencies
            ],
            source=self.source,
            build_meta=dict(self.build_meta, cached=True),
            build_timestamp=self.build_timestamp,
            emitted_files=dict(self.emitted_files),
        )

    def mark_built(self) -> None:
        self.build_meta = {"suspended": False}
        if not self.build_timestamp:
            self.build_timestamp = time.time()


@dataclass(eq=False)
class Chunk:
    """A named grouping of modules mapped to emitted files."""

    id: str
    name: str | None = None
    entry: bool = False
    modules: list[Module] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    auxiliary_files: list[str] = field(default_factory=list)

    def add_module(self, module: Module) -> bool:
        if module in self.modules:
            return False
        self.modules.append(module)
        return True

    def iter_modules(self) -> Iterator[Module]:
        """Every module the compilation assigned to this chunk."""
        yield from self.modules

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "entry": self.entry,
            "files": list(self.files),
            "auxiliary_files": list(self.auxiliary_files),
            "modules": [m.identity for m in self.modules],
        }
