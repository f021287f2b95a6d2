"""
Dev server — Flask app factory.

Every path goes through the same chain:

    gate middleware  →  DevServer.handle  →  404

The gate is optional; without it the units build everything eagerly.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from flask import Flask, abort, request

from lazybuild.adapters.bundler.compiler import create_compiler
from lazybuild.adapters.bundler.filesystem import FileSystem
from lazybuild.core.gate import LazyBuild
from lazybuild.core.models.config import LazyBuildConfig
from lazybuild.core.observability.metrics import MetricsRegistry
from lazybuild.ui.web.dev_server import DevServer

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def create_app(
    config: LazyBuildConfig,
    *,
    input_fs: FileSystem | None = None,
    output_fs: FileSystem | None = None,
    gate: bool | None = None,
    loaders: dict[str, list[Callable[[str, str], str]]] | None = None,
    metrics: MetricsRegistry | None = None,
    plugins: list[Any] | None = None,
) -> Flask:
    """Create the Flask app and start watching every unit.

    Args:
        config: Validated configuration.
        input_fs: Where sources are read (default: local disk).
        output_fs: Where assets are written (default: in memory).
        gate: Attach the lazy compilation gate; None follows ``config.gate.enabled``.
        loaders: Per-unit loader callables, replacing configured import strings.
        metrics: Registry shared by the gate and the units.
        plugins: Extra build plugins, applied before the gate and before
            watching starts.

    Returns:
        Configured Flask application. ``app.extensions["lazybuild"]``
        holds the dev server, the compiler and the gate (or None).
    """
    metrics = metrics or MetricsRegistry()
    compiler = create_compiler(config, input_fs=input_fs, output_fs=output_fs, loaders=loaders, metrics=metrics)

    if plugins:
        compiler.apply(*plugins)

    if gate is None:
        gate = config.gate.enabled

    lazy_build: LazyBuild | None = None
    if gate:
        lazy_build = LazyBuild(policy=config.gate.policy, metrics=metrics)
        compiler.apply(lazy_build.create_plugin())

    dev_server = DevServer(
        compiler,
        public_path=config.server.public_path,
        poll_interval=config.watch.poll_interval,
        wait_timeout=config.server.wait_timeout,
    )
    middleware = lazy_build.create_middleware(dev_server) if lazy_build else None

    app = Flask(__name__)
    app.extensions["lazybuild"] = {
        "config": config,
        "compiler": compiler,
        "dev_server": dev_server,
        "gate": lazy_build,
        "metrics": metrics,
    }

    from lazybuild.ui.web.routes_status import status_bp

    app.register_blueprint(status_bp, url_prefix="/__lazybuild__")

    def _not_found() -> None:
        abort(404)

    @app.route("/", defaults={"path": ""}, methods=_ALL_METHODS)
    @app.route("/<path:path>", methods=_ALL_METHODS)
    def artifact(path: str):  # type: ignore[no-untyped-def]
        def serve():  # type: ignore[no-untyped-def]
            return dev_server.handle(request, _not_found)

        if middleware is None:
            return serve()
        return middleware(request, serve)

    logger.info(
        "Dev server app created (%d unit(s), gate %s)",
        len(compiler.compilers),
        "on" if lazy_build else "off",
    )
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8080,
    debug: bool = False,
) -> None:
    """Run the Flask development server until interrupted."""
    logger.info("Serving build output on http://%s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
    finally:
        app.extensions["lazybuild"]["dev_server"].close()
