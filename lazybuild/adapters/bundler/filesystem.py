"""
Filesystems — where the pipeline reads sources and writes assets.

Paths are POSIX strings. ``MemoryFileSystem`` keeps a modification time
per file so the watcher and the module cache behave exactly as they do
on disk; the dev server uses one as its output filesystem.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class FileSystem(ABC):
    """Minimal filesystem interface used by compilers and watchers."""

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """Return the file's contents. Raises FileNotFoundError."""

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> None:
        """Create or replace a file, creating parent directories."""

    @abstractmethod
    def mtime(self, path: str) -> float | None:
        """Modification time, or None when the file does not exist."""

    def exists(self, path: str) -> bool:
        return self.mtime(path) is not None

    def read_text(self, path: str) -> str:
        return self.read_bytes(path).decode("utf-8")

    def write_text(self, path: str, text: str) -> None:
        self.write_bytes(path, text.encode("utf-8"))


class MemoryFileSystem(FileSystem):
    """Thread-safe in-memory filesystem."""

    def __init__(self, files: dict[str, str | bytes] | None = None) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, tuple[bytes, float]] = {}
        self._last_mtime = 0.0
        for path, content in (files or {}).items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            self.write_bytes(path, content)

    def read_bytes(self, path: str) -> bytes:
        with self._lock:
            entry = self._files.get(path)
        if entry is None:
            raise FileNotFoundError(path)
        return entry[0]

    def write_bytes(self, path: str, data: bytes) -> None:
        with self._lock:
            # Strictly increasing so back-to-back writes are distinguishable
            now = max(time.time(), self._last_mtime + 1e-6)
            self._last_mtime = now
            self._files[path] = (bytes(data), now)

    def mtime(self, path: str) -> float | None:
        with self._lock:
            entry = self._files.get(path)
        return entry[1] if entry else None

    def remove(self, path: str) -> None:
        with self._lock:
            self._files.pop(path, None)

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._files)


class LocalFileSystem(FileSystem):
    """The real disk."""

    def read_bytes(self, path: str) -> bytes:
        target = Path(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return target.read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("Wrote %d bytes to %s", len(data), target)

    def mtime(self, path: str) -> float | None:
        try:
            target = Path(path)
            if not target.is_file():
                return None
            return target.stat().st_mtime
        except OSError:
            return None
