"""
Watch mode — one worker thread per build unit, plus a polling watcher.

Each ``Watching`` runs its unit's passes serially on its own thread,
which plays the role of the unit's event loop. ``invalidate()`` only
schedules a pass; an invalidation that lands while a pass is running
makes the worker run again before ``done`` fires.

Watcher slot
────────────
    watching.watcher          active watcher, or None when parked
    watching.paused_watcher   watcher parked by a scoped recompile

Both are guarded by ``watching.lock``. After every pass a fresh watcher
is started from ``compiler.file_timestamps`` and the previous active and
parked watchers are closed, so a parked watcher lives exactly until its
replacement is watching.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from typing import TYPE_CHECKING, Callable

from lazybuild.adapters.bundler.filesystem import FileSystem

if TYPE_CHECKING:
    from lazybuild.adapters.bundler.compiler import Compiler, Stats

logger = logging.getLogger(__name__)


class Watcher:
    """Polls modification times of a fixed set of files."""

    def __init__(
        self,
        fs: FileSystem,
        paths: list[str],
        start_times: dict[str, float],
        start_time: float,
        on_change: Callable[[Watcher, list[str]], None],
        poll_interval: float = 0.5,
    ) -> None:
        self._fs = fs
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._paused = False
        self._times: dict[str, float | None] = {}

        for path in paths:
            if path in start_times:
                self._times[path] = start_times[path]
                continue
            current = fs.mtime(path)
            # Touched after the pass started: report on the first poll
            self._times[path] = start_time if current is not None and current > start_time else current

        self._thread = threading.Thread(target=self._run, name="watcher", daemon=True)
        self._thread.start()

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def closed(self) -> bool:
        return self._stop.is_set()

    def get_times(self) -> dict[str, float]:
        """Latest known modification time of every existing watched file."""
        with self._lock:
            return {p: t for p, t in self._times.items() if t is not None}

    def pause(self) -> None:
        """Keep tracking times but stop reporting changes."""
        self._paused = True

    def close(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self._poll_interval):
            changed = self._poll()
            if changed and not self._paused and not self._stop.is_set():
                logger.debug("Watcher saw %d changed file(s): %s", len(changed), changed)
                self._on_change(self, changed)

    def _poll(self) -> list[str]:
        changed: list[str] = []
        with self._lock:
            for path, known in self._times.items():
                current = self._fs.mtime(path)
                if current != known:
                    self._times[path] = current
                    changed.append(path)
        return changed


class WatchState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


class Watching:
    """Watch loop of one build unit."""

    def __init__(self, compiler: Compiler, poll_interval: float = 0.5) -> None:
        self.compiler = compiler
        self.poll_interval = poll_interval
        self.lock = threading.RLock()
        self.watcher: Watcher | None = None
        self.paused_watcher: Watcher | None = None
        self.state = WatchState.IDLE
        self.last_stats: Stats | None = None
        self.passes = 0

        self._invalid = True
        self._wake = threading.Event()
        self._wake.set()
        self._thread = threading.Thread(
            target=self._loop, name=f"watch-{compiler.name}", daemon=True,
        )
        self._thread.start()

    def __repr__(self) -> str:
        return f"Watching({self.compiler.name!r}, state={self.state})"

    @property
    def watchings(self) -> list[Watching]:
        return [self]

    @property
    def running(self) -> bool:
        return self.state == WatchState.RUNNING

    def invalidate(self) -> None:
        """Schedule a new pass. Returns immediately."""
        with self.lock:
            if self.state == WatchState.CLOSED:
                return
            self._invalid = True
        self.compiler.hooks.invalid.call(self.compiler)
        self._wake.set()

    def close(self, timeout: float | None = 5.0) -> None:
        with self.lock:
            self.state = WatchState.CLOSED
            for watcher in (self.watcher, self.paused_watcher):
                if watcher is not None:
                    watcher.close()
            self.watcher = None
            self.paused_watcher = None
        self._wake.set()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    # ── Worker ──────────────────────────────────────────────────────

    def _loop(self) -> None:
        while True:
            self._wake.wait()
            with self.lock:
                if self.state == WatchState.CLOSED:
                    return
                self._wake.clear()
                self._invalid = False
                self.state = WatchState.RUNNING

            stats = self.compiler.compile()

            with self.lock:
                if self.state == WatchState.CLOSED:
                    return
                if self._invalid:
                    logger.debug("Unit '%s' invalidated during its pass, running again", self.compiler.name)
                    continue
                self.passes += 1
                self.last_stats = stats
                self.state = WatchState.IDLE
                self._start_watcher(stats)
                # Under the lock so a concurrent invalidate() is ordered after done
                self.compiler.hooks.done.call(stats)

    def _start_watcher(self, stats: Stats) -> None:
        previous = (self.watcher, self.paused_watcher)
        self.watcher = Watcher(
            self.compiler.input_fs,
            sorted(stats.compilation.file_dependencies),
            start_times=dict(self.compiler.file_timestamps),
            start_time=stats.start_time,
            on_change=self._on_change,
            poll_interval=self.poll_interval,
        )
        self.paused_watcher = None
        for watcher in previous:
            if watcher is not None:
                watcher.close()

    def _on_change(self, watcher: Watcher, changed: list[str]) -> None:
        with self.lock:
            if watcher is not self.watcher or self.state == WatchState.CLOSED:
                return
            times = watcher.get_times()
            self.compiler.file_timestamps = times
            self.compiler.context_timestamps = dict(times)
        logger.info("Unit '%s': %d file(s) changed", self.compiler.name, len(changed))
        self.invalidate()


class MultiWatching:
    """Watch loops of every unit in a swarm."""

    def __init__(self, watchings: list[Watching]) -> None:
        self.watchings = watchings

    def invalidate(self) -> None:
        for watching in self.watchings:
            watching.invalidate()

    def close(self, timeout: float | None = 5.0) -> None:
        for watching in self.watchings:
            watching.close(timeout)
