"""
Tests for watch mode — the polling watcher and per-unit watch loops.
"""

from __future__ import annotations

import threading
import time

from conftest import make_unit
from lazybuild.adapters.bundler.compiler import Compiler
from lazybuild.adapters.bundler.filesystem import MemoryFileSystem
from lazybuild.adapters.bundler.watching import Watcher, WatchState, Watching

POLL = 0.02


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestWatcher:
    def test_reports_changes(self):
        fs = MemoryFileSystem({"/a.js": "a"})
        changes = []
        watcher = Watcher(
            fs, ["/a.js"], start_times={"/a.js": fs.mtime("/a.js")}, start_time=time.time(),
            on_change=lambda w, changed: changes.append(changed), poll_interval=POLL,
        )
        try:
            fs.write_text("/a.js", "b")
            assert _wait_for(lambda: changes)
            assert changes[0] == ["/a.js"]
            assert watcher.get_times()["/a.js"] == fs.mtime("/a.js")
        finally:
            watcher.close()

    def test_paused_watcher_keeps_times_silently(self):
        fs = MemoryFileSystem({"/a.js": "a"})
        on_change = []
        watcher = Watcher(
            fs, ["/a.js"], start_times={}, start_time=time.time(),
            on_change=lambda w, c: on_change.append(c), poll_interval=POLL,
        )
        try:
            watcher.pause()
            fs.write_text("/a.js", "b")
            assert _wait_for(lambda: watcher.get_times()["/a.js"] == fs.mtime("/a.js"))
            assert on_change == []
        finally:
            watcher.close()

    def test_file_touched_during_pass_is_reported(self):
        fs = MemoryFileSystem({"/a.js": "a"})
        start = fs.mtime("/a.js") - 1.0
        changes = []
        watcher = Watcher(
            fs, ["/a.js"], start_times={}, start_time=start,
            on_change=lambda w, c: changes.append(c), poll_interval=POLL,
        )
        try:
            assert _wait_for(lambda: changes)
        finally:
            watcher.close()

    def test_missing_files_have_no_time(self):
        watcher = Watcher(
            MemoryFileSystem(), ["/gone.js"], start_times={}, start_time=time.time(),
            on_change=lambda w, c: None, poll_interval=POLL,
        )
        try:
            assert watcher.get_times() == {}
        finally:
            watcher.close()
        assert watcher.closed


class TestWatching:
    def _watching(self, files):
        fs = MemoryFileSystem(files)
        compiler = Compiler(make_unit("/in"), fs)
        done = threading.Event()
        results = []

        def on_done(stats):
            results.append(stats)
            done.set()

        compiler.hooks.done.tap("test", on_done)
        return fs, compiler, Watching(compiler, poll_interval=POLL), results

    def test_initial_pass_starts_watcher(self):
        fs, compiler, watching, results = self._watching({"/in.js": ""})
        try:
            assert _wait_for(lambda: results)
            assert watching.watcher is not None
            assert watching.paused_watcher is None
            assert watching.state == WatchState.IDLE
            assert watching.watchings == [watching]
        finally:
            watching.close()
        assert watching.state == WatchState.CLOSED

    def test_file_change_triggers_pass(self):
        fs, compiler, watching, results = self._watching({"/in.js": "1"})
        try:
            assert _wait_for(lambda: len(results) == 1)
            fs.write_text("/in.js", 'console.log("2")')
            assert _wait_for(lambda: len(results) == 2)
            assert 'console.log("2")' in results[-1].compilation.assets["main.js"].decode()
            assert compiler.file_timestamps["/in.js"] == fs.mtime("/in.js")
        finally:
            watching.close()

    def test_invalidate_runs_new_pass_and_replaces_parked_watcher(self):
        fs, compiler, watching, results = self._watching({"/in.js": ""})
        try:
            assert _wait_for(lambda: len(results) == 1)
            with watching.lock:
                parked = watching.watcher
                parked.pause()
                watching.paused_watcher = parked
                watching.watcher = None
            watching.invalidate()
            assert _wait_for(lambda: len(results) == 2)
            assert watching.paused_watcher is None
            assert watching.watcher is not None and watching.watcher is not parked
            assert parked.closed
        finally:
            watching.close()

    def test_invalid_hook_fires(self):
        fs, compiler, watching, results = self._watching({"/in.js": ""})
        fired = []
        compiler.hooks.invalid.tap("test", fired.append)
        try:
            assert _wait_for(lambda: results)
            watching.invalidate()
            assert fired == [compiler]
        finally:
            watching.close()

    def test_closed_watching_ignores_invalidate(self):
        fs, compiler, watching, results = self._watching({"/in.js": ""})
        assert _wait_for(lambda: results)
        watching.close()
        count = len(results)
        watching.invalidate()
        time.sleep(0.1)
        assert len(results) == count
