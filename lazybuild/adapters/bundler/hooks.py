"""
Typed hook points that plugins tap into.

    compiler.hooks.compilation.tap("MyPlugin", on_compilation)
    compilation.hooks.build_module.tap("MyPlugin", on_build_module)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SyncHook:
    """Calls every tap in registration order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._taps: list[tuple[str, Callable[..., Any]]] = []
        self._lock = threading.Lock()

    def tap(self, plugin_name: str, fn: Callable[..., Any]) -> None:
        with self._lock:
            self._taps.append((plugin_name, fn))
        logger.debug("%s tapped %s", plugin_name, self.name)

    @property
    def taps(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self._taps]

    def _snapshot(self) -> list[tuple[str, Callable[..., Any]]]:
        with self._lock:
            return list(self._taps)

    def call(self, *args: Any) -> None:
        for _, fn in self._snapshot():
            fn(*args)


class SyncBailHook(SyncHook):
    """Stops at, and returns, the first tap result that is not None."""

    def call(self, *args: Any) -> Any:
        for _, fn in self._snapshot():
            result = fn(*args)
            if result is not None:
                return result
        return None


@dataclass
class CompilerHooks:
    compilation: SyncHook = field(default_factory=lambda: SyncHook("compilation"))
    done: SyncHook = field(default_factory=lambda: SyncHook("done"))
    invalid: SyncHook = field(default_factory=lambda: SyncHook("invalid"))


@dataclass
class CompilationHooks:
    # tap(module, compilation) -> suspension | None
    build_module: SyncBailHook = field(default_factory=lambda: SyncBailHook("build_module"))
