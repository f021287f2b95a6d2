"""
Compilation — one build pass of one build unit.

Pass model
──────────
  1. Entries are resolved and added with an ENTRY reason.
  2. Each new module goes through the build step. ``build_module`` taps
     may return a suspension instead of letting the build happen; the
     module is then recorded as a no-op build and its completion
     callback is handed to the suspension.
  3. Completion callbacks and dependency processing run as ticks on the
     pass's ``TickScheduler`` until it drains. Every build step must have
     completed by then.
  4. ``seal()`` groups modules into chunks and renders assets.

Modules built in an earlier pass are reused from the compiler's cache
while their file timestamp is older than the cached build.
"""

from __future__ import annotations

import json
import logging
import posixpath
import time
from collections import deque
from functools import partial
from typing import TYPE_CHECKING, Any, Callable

from lazybuild.adapters.bundler.hooks import CompilationHooks
from lazybuild.adapters.bundler.source import ResolveError, parse_dependencies, resolve_request
from lazybuild.core.models.graph import Chunk, DependencyKind, Module, ModuleReason

if TYPE_CHECKING:
    from lazybuild.adapters.bundler.compiler import Compiler

logger = logging.getLogger(__name__)

NO_SOURCE = "// No source available"


class CompilationError(Exception):
    """A pass could not satisfy the pipeline's own bookkeeping."""


class TickScheduler:
    """FIFO of callbacks, each run on a later tick of the same pass."""

    def __init__(self) -> None:
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self.ticks = 0

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.append((callback, args))

    def run_until_idle(self) -> int:
        """Run callbacks (including ones they schedule) until none are left."""
        ran = 0
        while self._queue:
            callback, args = self._queue.popleft()
            callback(*args)
            ran += 1
        self.ticks += ran
        return ran


class Compilation:
    """Snapshot of one pass: modules, chunks, assets and errors."""

    def __init__(self, compiler: Compiler) -> None:
        self.compiler = compiler
        self.options = compiler.options
        self.input_fs = compiler.input_fs
        self.hooks = CompilationHooks()
        self.scheduler = TickScheduler()
        self.modules: dict[str, Module] = {}
        self.entry_modules: dict[str, list[Module]] = {}
        self.chunks: list[Chunk] = []
        self.assets: dict[str, bytes] = {}
        self.errors: list[str] = []
        self.file_dependencies: set[str] = set()
        self.built_count = 0
        self.cached_count = 0
        self._pending_builds = 0

    @property
    def name(self) -> str:
        return self.compiler.name

    @property
    def output_path(self) -> str:
        return self.compiler.output_path

    # ── Pass ────────────────────────────────────────────────────────

    def run(self) -> None:
        for name, requests in self.options.entries().items():
            modules = self.entry_modules.setdefault(name, [])
            for request in requests:
                try:
                    resource = resolve_request(self.input_fs, request, self.options.context)
                except ResolveError as e:
                    self.errors.append(f"Entry '{name}': {e}")
                    continue
                modules.append(self._add_module(resource, ModuleReason(None, DependencyKind.ENTRY, request)))

        self.scheduler.run_until_idle()
        if self._pending_builds:
            raise CompilationError(
                f"{self._pending_builds} build step(s) in '{self.name}' never completed"
            )
        self.seal()

    def _add_module(self, resource: str, reason: ModuleReason) -> Module:
        module = self.modules.get(resource)
        if module is not None:
            if module.add_reason(reason) and module.suspended and reason.kind != DependencyKind.DYNAMIC_IMPORT:
                # Reasons changed after the build step was deferred: ask again
                self._build(module)
            return module

        self.file_dependencies.add(resource)
        cached = self.compiler.cache.get(resource)
        if cached is not None and not cached.needs_rebuild(self.compiler.file_timestamps):
            module = cached.reuse()
            module.add_reason(reason)
            self.modules[resource] = module
            self.cached_count += 1
            self.scheduler.call_soon(self._process_dependencies, module)
            return module

        module = Module(resource=resource, type=self._module_type(resource))
        module.add_reason(reason)
        self.modules[resource] = module
        self._build(module)
        return module

    def _module_type(self, resource: str) -> str:
        ext = posixpath.splitext(resource)[1]
        return "asset" if ext in self.options.asset_extensions else "javascript"

    # ── Build step ──────────────────────────────────────────────────

    def _build(self, module: Module) -> None:
        self._pending_builds += 1
        module.reset_build()

        suspension = self.hooks.build_module.call(module, self)
        if suspension is not None:
            module.build_meta = {"suspended": True}
            suspension.add_continuation(partial(self._finish_build, module))
            return

        try:
            self._run_build(module)
        except Exception as e:
            module.error = f"Module build failed: {e}"
            self.errors.append(f"{module.identity}: {module.error}")
            logger.warning("Build of %s failed: %s", module.identity, e)
        self._finish_build(module)

    def _run_build(self, module: Module) -> None:
        assert module.resource is not None
        module.build_timestamp = time.time()
        if module.type == "asset":
            data = self.input_fs.read_bytes(module.resource)
            name = posixpath.basename(module.resource)
            url = self.options.output.public_path.rstrip("/") + "/" + name
            module.emitted_files = {name: data}
            module.source = f"module.exports = {json.dumps(url)};"
        else:
            source = self.input_fs.read_text(module.resource)
            for loader in self.compiler.loaders:
                source = loader(source, module.resource)
            module.source = source
            module.dependencies = parse_dependencies(source)
        module.mark_built()
        self.compiler.cache[module.identity] = module
        self.built_count += 1

    def _finish_build(self, module: Module) -> None:
        self._pending_builds -= 1
        self.scheduler.call_soon(self._process_dependencies, module)

    def _process_dependencies(self, module: Module) -> None:
        if module.resource is None:
            return
        issuer_dir = posixpath.dirname(module.resource)
        for dep in module.dependencies:
            try:
                dep.resolved = resolve_request(self.input_fs, dep.request, issuer_dir)
            except ResolveError as e:
                self.errors.append(f"{module.identity}: {e}")
                continue
            self._add_module(dep.resolved, ModuleReason(module.identity, dep.kind, dep.request))

    # ── Chunk graph ─────────────────────────────────────────────────

    def seal(self) -> None:
        """Assign modules to chunks and render every chunk's file."""
        counter = 0
        named: dict[str, Chunk] = {}
        async_chunks: dict[str, Chunk] = {}
        blocks: deque[tuple[Module, str | None]] = deque()

        def new_chunk(name: str | None, entry: bool) -> Chunk:
            nonlocal counter
            chunk = Chunk(id=name or str(counter), name=name, entry=entry)
            counter += 1
            self.chunks.append(chunk)
            return chunk

        def fill(chunk: Chunk, root: Module) -> None:
            stack = [root]
            while stack:
                module = stack.pop()
                if not chunk.add_module(module):
                    continue
                static: list[Module] = []
                for dep in module.dependencies:
                    target = self.modules.get(dep.resolved) if dep.resolved else None
                    if target is None:
                        continue
                    if dep.kind == DependencyKind.DYNAMIC_IMPORT:
                        blocks.append((target, dep.chunk_name))
                    else:
                        static.append(target)
                stack.extend(reversed(static))

        for name, modules in self.entry_modules.items():
            chunk = new_chunk(name, entry=True)
            for module in modules:
                fill(chunk, module)

        while blocks:
            target, chunk_name = blocks.popleft()
            if chunk_name and chunk_name in named:
                fill(named[chunk_name], target)
                continue
            if target.identity in async_chunks:
                continue
            chunk = new_chunk(chunk_name, entry=False)
            if chunk_name:
                named[chunk_name] = chunk
            async_chunks[target.identity] = chunk
            fill(chunk, target)

        for chunk in self.chunks:
            self._render(chunk)

    def _render(self, chunk: Chunk) -> None:
        output = self.options.output
        pattern = output.filename if chunk.entry else output.resolved_chunk_filename()
        filename = pattern.replace("[name]", chunk.name or chunk.id).replace("[id]", chunk.id)
        chunk.files.append(filename)

        lines = [f"/* lazybuild chunk {chunk.id} */", f"__lazybuild__.register({json.dumps(chunk.id)}, {{"]
        for module in chunk.iter_modules():
            if module.built:
                body = module.source or ""
            elif module.error:
                body = f"throw new Error({json.dumps(module.error)});"
            else:
                body = NO_SOURCE
            lines.append(f"{json.dumps(module.identity)}: function (module, exports, require) {{")
            lines.append(body)
            lines.append("},")
            for asset_name, data in module.emitted_files.items():
                self.assets[asset_name] = data
                if asset_name not in chunk.auxiliary_files:
                    chunk.auxiliary_files.append(asset_name)
        lines.append("});")
        self.assets[filename] = ("\n".join(lines) + "\n").encode("utf-8")
