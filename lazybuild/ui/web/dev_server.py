"""
Development artifact server — serves a watched unit's output files.

Tracks whether the latest pass is finished (``valid``) and holds
requests until it is. Files are read from each unit's output
filesystem, so nothing is written to disk in dev mode.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from typing import Any, Callable

from flask import Response

from lazybuild.adapters.bundler.paths import resolve_artifact_path

logger = logging.getLogger(__name__)


class DevServer:
    """Watch a compiler or multi-compiler and serve what it emits."""

    def __init__(
        self,
        compiler: Any,
        public_path: str | None = None,
        poll_interval: float = 0.5,
        wait_timeout: float = 60.0,
    ) -> None:
        self.compiler = compiler
        self.public_path = public_path
        self.wait_timeout = wait_timeout
        self.valid = False
        self.stats: Any = None
        self._cond = threading.Condition()

        compiler.hooks.invalid.tap("DevServer", self._on_invalid)
        compiler.hooks.done.tap("DevServer", self._on_done)
        self.watching = compiler.watch(poll_interval)

    # ── State ───────────────────────────────────────────────────────

    def _on_invalid(self, *_: Any) -> None:
        with self._cond:
            self.valid = False
        logger.debug("Build invalidated")

    def _on_done(self, stats: Any) -> None:
        with self._cond:
            self.stats = stats
            self.valid = True
            self._cond.notify_all()
        for error in stats.errors:
            logger.warning("Build error: %s", error)

    def invalidate_state(self) -> None:
        with self._cond:
            self.valid = False

    def wait_until_valid(self, timeout: float | None = None) -> Any:
        """Block until the latest pass is done; returns its stats or None on timeout."""
        with self._cond:
            ok = self._cond.wait_for(lambda: self.valid, timeout or self.wait_timeout)
            return self.stats if ok else None

    # ── Serving ─────────────────────────────────────────────────────

    def resolve(self, url: str) -> str | None:
        return resolve_artifact_path(self.public_path, self.compiler, url)

    def handle(self, request: Any, next_handler: Callable[[], Any]) -> Any:
        if request.method not in ("GET", "HEAD"):
            return next_handler()

        filename = self.resolve(request.url)
        if filename is None:
            return next_handler()

        if self.wait_until_valid() is None:
            logger.warning("Gave up waiting for a valid build to serve %s", filename)
            return Response("Build not ready\n", status=503, mimetype="text/plain")

        for unit in self.compiler.compilers:
            if unit.output_fs.exists(filename):
                data = unit.output_fs.read_bytes(filename)
                mimetype = mimetypes.guess_type(filename)[0] or "application/octet-stream"
                return Response(data, mimetype=mimetype)
        return next_handler()

    def status(self) -> dict[str, Any]:
        with self._cond:
            stats = self.stats
            valid = self.valid
        return {
            "valid": valid,
            "units": [
                {"name": w.compiler.name, "state": str(w.state), "passes": w.passes}
                for w in self.watching.watchings
            ],
            "stats": stats.to_dict() if stats is not None else None,
        }

    def close(self) -> None:
        self.watching.close()
