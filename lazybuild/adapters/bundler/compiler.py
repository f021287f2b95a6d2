"""
Build units — one ``Compiler`` per unit, ``MultiCompiler`` for a swarm.

A compiler owns everything that outlives a single pass: hooks, the
module cache, and the file timestamps installed by the watcher. Each
``compile()`` creates a fresh ``Compilation`` and writes its assets to
the output filesystem under ``output_path``.

Single units and swarms expose the same shape so callers never branch:

    compiler.compilers    → [Compiler, ...]
    stats.stats           → [Stats, ...]
    watching.watchings    → [Watching, ...]
"""

from __future__ import annotations

import logging
import posixpath
import threading
import time
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Iterable

from lazybuild.adapters.bundler.compilation import Compilation, CompilationError
from lazybuild.adapters.bundler.filesystem import FileSystem, LocalFileSystem, MemoryFileSystem
from lazybuild.adapters.bundler.hooks import CompilerHooks
from lazybuild.adapters.bundler.loaders import load_loaders
from lazybuild.core.models.config import LazyBuildConfig, UnitConfig
from lazybuild.core.models.graph import Module
from lazybuild.core.observability.metrics import MetricsRegistry

if TYPE_CHECKING:
    from lazybuild.adapters.bundler.watching import MultiWatching, Watching

logger = logging.getLogger(__name__)

Loader = Callable[[str, str], str]


class Stats:
    """Result of one pass of one unit."""

    def __init__(self, compilation: Compilation, start_time: float, end_time: float) -> None:
        self.compilation = compilation
        self.start_time = start_time
        self.end_time = end_time

    @property
    def stats(self) -> list[Stats]:
        return [self]

    @property
    def errors(self) -> list[str]:
        return list(self.compilation.errors)

    def has_errors(self) -> bool:
        return bool(self.compilation.errors)

    def to_dict(self) -> dict[str, Any]:
        c = self.compilation
        return {
            "unit": c.name,
            "output_path": c.output_path,
            "duration_ms": round((self.end_time - self.start_time) * 1000, 2),
            "assets": sorted(c.assets),
            "chunks": [chunk.to_dict() for chunk in c.chunks],
            "modules": {
                "total": len(c.modules),
                "built": c.built_count,
                "cached": c.cached_count,
                "suspended": sum(1 for m in c.modules.values() if m.suspended),
            },
            "errors": list(c.errors),
        }


class MultiStats:
    """Latest stats of every unit in a swarm."""

    def __init__(self, stats: list[Stats]) -> None:
        self.stats = stats

    def has_errors(self) -> bool:
        return any(s.has_errors() for s in self.stats)

    @property
    def errors(self) -> list[str]:
        return [e for s in self.stats for e in s.errors]

    def to_dict(self) -> dict[str, Any]:
        return {"units": [s.to_dict() for s in self.stats]}


class Compiler:
    """One independently watched build unit."""

    def __init__(
        self,
        options: UnitConfig,
        input_fs: FileSystem,
        output_fs: FileSystem | None = None,
        loaders: Iterable[Loader] | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.options = options
        self.name = options.name
        self.output_path = options.output.path
        self.input_fs = input_fs
        self.output_fs = output_fs or MemoryFileSystem()
        self.loaders: list[Loader] = list(loaders or [])
        self.metrics = metrics or MetricsRegistry()
        self.hooks = CompilerHooks()
        self.file_timestamps: dict[str, float] = {}
        self.context_timestamps: dict[str, float] = {}
        self.cache: dict[str, Module] = {}

    def __repr__(self) -> str:
        return f"Compiler({self.name!r}, output_path={self.output_path!r})"

    @property
    def compilers(self) -> list[Compiler]:
        return [self]

    def apply(self, *plugins: Any) -> None:
        for plugin in plugins:
            plugin.apply(self)

    def new_compilation(self) -> Compilation:
        compilation = Compilation(self)
        self.hooks.compilation.call(compilation)
        return compilation

    def compile(self) -> Stats:
        """Run one pass and emit its assets. Never raises for build errors."""
        start = time.time()
        compilation = self.new_compilation()
        with self.metrics.timer("build.duration_ms", unit=self.name):
            try:
                compilation.run()
            except CompilationError as e:
                logger.error("Pass of unit '%s' failed: %s", self.name, e)
                compilation.errors.append(str(e))
            except Exception as e:
                logger.exception("Pass of unit '%s' crashed", self.name)
                compilation.errors.append(f"Unexpected error: {e}")

        for name, data in compilation.assets.items():
            self.output_fs.write_bytes(posixpath.join(self.output_path, name), data)

        stats = Stats(compilation, start, time.time())
        logger.info(
            "Unit '%s': %d asset(s), %d built, %d cached, %d error(s) in %.0fms",
            self.name,
            len(compilation.assets),
            compilation.built_count,
            compilation.cached_count,
            len(compilation.errors),
            (stats.end_time - start) * 1000,
        )
        return stats

    def run(self) -> Stats:
        """Single pass without watching; fires ``done``."""
        stats = self.compile()
        self.hooks.done.call(stats)
        return stats

    def watch(self, poll_interval: float = 0.5) -> Watching:
        from lazybuild.adapters.bundler.watching import Watching

        return Watching(self, poll_interval=poll_interval)


class MultiCompiler:
    """A swarm of units sharing one ``done`` signal.

    ``done`` fires with ``MultiStats`` only once every unit has finished
    at least one pass and none is currently running.
    """

    def __init__(self, compilers: Iterable[Compiler]) -> None:
        self.compilers: list[Compiler] = list(compilers)
        self.hooks = CompilerHooks()
        self._lock = threading.Lock()
        self._running: set[str] = set()
        self._latest: dict[str, Stats] = {}
        for compiler in self.compilers:
            compiler.hooks.invalid.tap("MultiCompiler", partial(self._on_invalid, compiler))
            compiler.hooks.done.tap("MultiCompiler", partial(self._on_done, compiler))

    def __repr__(self) -> str:
        return f"MultiCompiler({[c.name for c in self.compilers]!r})"

    def apply(self, *plugins: Any) -> None:
        for compiler in self.compilers:
            compiler.apply(*plugins)

    def run(self) -> MultiStats:
        for compiler in self.compilers:
            compiler.run()
        with self._lock:
            return MultiStats([self._latest[c.name] for c in self.compilers])

    def watch(self, poll_interval: float = 0.5) -> MultiWatching:
        from lazybuild.adapters.bundler.watching import MultiWatching, Watching

        return MultiWatching([Watching(c, poll_interval=poll_interval) for c in self.compilers])

    def _on_invalid(self, compiler: Compiler, *_: Any) -> None:
        with self._lock:
            first = not self._running
            self._running.add(compiler.name)
        if first:
            self.hooks.invalid.call(self)

    def _on_done(self, compiler: Compiler, stats: Stats) -> None:
        with self._lock:
            self._running.discard(compiler.name)
            self._latest[compiler.name] = stats
            if self._running or len(self._latest) < len(self.compilers):
                return
            multi = MultiStats([self._latest[c.name] for c in self.compilers])
            self.hooks.done.call(multi)


def create_compiler(
    config: LazyBuildConfig,
    input_fs: FileSystem | None = None,
    output_fs: FileSystem | None = None,
    loaders: dict[str, list[Loader]] | None = None,
    metrics: MetricsRegistry | None = None,
) -> Compiler | MultiCompiler:
    """Build the units a configuration describes.

    ``loaders`` maps unit names to loader callables and replaces the
    unit's configured import strings. One unit yields a plain
    ``Compiler``; several yield a ``MultiCompiler``.

    Raises:
        ConfigError: a configured loader cannot be imported.
    """
    input_fs = input_fs or LocalFileSystem()
    output_fs = output_fs or MemoryFileSystem()
    metrics = metrics or MetricsRegistry()
    overrides = loaders or {}

    compilers = []
    for unit in config.units:
        unit_loaders = overrides[unit.name] if unit.name in overrides else load_loaders(unit.loaders)
        compilers.append(Compiler(unit, input_fs, output_fs, unit_loaders, metrics))

    if len(compilers) == 1:
        return compilers[0]
    return MultiCompiler(compilers)
