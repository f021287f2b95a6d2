"""
Gate state that outlives build passes.

NeededModuleSet       identities known to be required. Insert-only.
RequestedArtifactSet  output paths already inspected against the
                      snapshot that is currently installed.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

logger = logging.getLogger(__name__)


class NeededModuleSet:
    """Monotonic set of module identities.

    There is no ``remove``: once a module is needed it is
    built eagerly on every later pass of the same gate.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._identities: set[str] = set()

    def mark(self, identity: str) -> bool:
        """Insert one identity. Returns True if it was not there yet."""
        with self._lock:
            if identity in self._identities:
                return False
            self._identities.add(identity)
            return True

    def mark_all(self, identities: Iterable[str]) -> list[str]:
        """Insert many identities; returns the newly added ones in order."""
        added: list[str] = []
        with self._lock:
            for identity in identities:
                if identity not in self._identities:
                    self._identities.add(identity)
                    added.append(identity)
        return added

    def is_needed(self, identity: str) -> bool:
        with self._lock:
            return identity in self._identities

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.is_needed(identity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._identities)


class RequestedArtifactSet:
    """Paths inspected against the installed snapshot.

    Keyed by snapshot object identity: when a new snapshot shows up the
    set starts over, so a re-request after a rebuild is inspected again
    against fresh chunk data.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: object | None = None
        self._paths: set[str] = set()

    def claim(self, snapshot: object, path: str) -> bool:
        """Return True if ``path`` has not been inspected against ``snapshot``."""
        with self._lock:
            if snapshot is not self._snapshot:
                self._snapshot = snapshot
                self._paths = set()
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
