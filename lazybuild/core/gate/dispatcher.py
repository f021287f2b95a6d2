"""
Request dispatcher — the gate's HTTP-facing middleware.

For a GET request:
    1. resolve the URL to an output file, or pass through
    2. ``*.css``: resolve the ``*.js`` companion, inspect it first and,
       if that scheduled a rebuild, wait for the server to become valid
    3. inspect the requested file itself
    4. hand the request to the downstream server

The dispatcher never produces a response of its own.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar
from urllib.parse import urlsplit, urlunsplit

from lazybuild.core.gate.inspector import ChunkInspector
from lazybuild.core.gate.needed import RequestedArtifactSet
from lazybuild.core.gate.protocols import ArtifactServer, ResolveFn

logger = logging.getLogger(__name__)

R = TypeVar("R")

STYLESHEET_SUFFIX = ".css"
SCRIPT_SUFFIX = ".js"


def companion_url(url: str) -> str | None:
    """``/x/main.css?v=1`` → ``/x/main.js?v=1``; None for other URLs."""
    parts = urlsplit(url)
    if not parts.path.endswith(STYLESHEET_SUFFIX):
        return None
    path = parts.path[: -len(STYLESHEET_SUFFIX)] + SCRIPT_SUFFIX
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


class RequestDispatcher:
    """Callable ``(request, next_handler)`` installed in front of the server."""

    def __init__(
        self,
        server: ArtifactServer,
        inspector: ChunkInspector,
        requested: RequestedArtifactSet,
        resolve: ResolveFn | None = None,
    ) -> None:
        self.server = server
        self.inspector = inspector
        self.requested = requested
        self.resolve: ResolveFn = resolve or server.resolve

    def __call__(self, request: Any, next_handler: Callable[[], R]) -> R:
        if request.method != "GET":
            return next_handler()

        url = request.url
        artifact = self.resolve(url)
        if artifact is None:
            return next_handler()

        if artifact.endswith(STYLESHEET_SUFFIX):
            companion = companion_url(url)
            companion_artifact = self.resolve(companion) if companion else None
            if companion_artifact is not None and self.process(companion_artifact):
                logger.debug("Waiting for companion %s before %s", companion_artifact, artifact)
                self.server.wait_until_valid()

        self.process(artifact)
        return next_handler()

    def process(self, artifact: str) -> bool:
        """Inspect ``artifact`` once per installed snapshot.

        Returns True iff a recompile was scheduled.
        """
        snapshot = self.server.wait_until_valid()
        if snapshot is None:
            logger.warning("No valid build to inspect %s against", artifact)
            return False
        if not self.requested.claim(snapshot, artifact):
            return False
        return self.inspector.inspect(artifact, snapshot.stats, self.server)
