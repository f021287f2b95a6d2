"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
from flask import Flask

from lazybuild.adapters.bundler.filesystem import MemoryFileSystem
from lazybuild.core.models.config import (
    LazyBuildConfig,
    OutputConfig,
    UnitConfig,
    WatchConfig,
)
from lazybuild.ui.web.server import create_app


def make_unit(
    entry: Any,
    name: str = "main",
    filename: str = "[name].js",
    path: str = "/",
    public_path: str = "/",
    **kwargs: Any,
) -> UnitConfig:
    """Unit reading from ``/`` of a memory filesystem."""
    return UnitConfig(
        name=name,
        entry=entry,
        context="/",
        output=OutputConfig(path=path, filename=filename, public_path=public_path),
        **kwargs,
    )


def make_config(*units: UnitConfig, **kwargs: Any) -> LazyBuildConfig:
    return LazyBuildConfig(
        name="test",
        units=list(units),
        watch=WatchConfig(poll_interval=0.05),
        **kwargs,
    )


class DoneRecorder:
    """Build plugin that records every ``done`` of one unit."""

    def __init__(self, unit: str | None = None) -> None:
        self.unit = unit
        self.stats: list[Any] = []

    def apply(self, compiler: Any) -> None:
        for c in compiler.compilers:
            if self.unit is None or c.name == self.unit:
                c.hooks.done.tap("DoneRecorder", self.stats.append)

    @property
    def count(self) -> int:
        return len(self.stats)

    @property
    def assets(self) -> list[str]:
        return sorted(self.stats[-1].compilation.assets) if self.stats else []


@pytest.fixture
def make_app() -> Iterator[Callable[..., Flask]]:
    """Factory for dev server apps over a memory filesystem.

    Waits for the first build and closes every watcher on teardown.
    """
    apps: list[Flask] = []

    def _make(config: LazyBuildConfig, files: dict[str, str], **kwargs: Any) -> Flask:
        app = create_app(config, input_fs=MemoryFileSystem(files), **kwargs)
        app.config["TESTING"] = True
        apps.append(app)
        stats = app.extensions["lazybuild"]["dev_server"].wait_until_valid(timeout=10)
        assert stats is not None, "first build did not finish"
        assert not stats.has_errors(), stats.errors
        return app

    yield _make

    for app in apps:
        app.extensions["lazybuild"]["dev_server"].close()
