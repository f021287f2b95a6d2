"""
lazybuild — CLI entrypoint.

Usage:
    lazybuild --help
    lazybuild serve
    lazybuild build --json
    lazybuild config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from lazybuild import __version__
from lazybuild.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="lazybuild")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to lazybuild.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """lazybuild — build only what the browser asks for."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(level=resolve_level(debug=debug, verbose=verbose, quiet=quiet))


def _load(ctx: click.Context):  # type: ignore[no-untyped-def]
    """Load config or exit 1 with the error."""
    from lazybuild.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


# ── serve ───────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from config).")
@click.option("--port", "-p", default=None, type=int, help="Port number (default: from config).")
@click.option("--no-gate", is_flag=True, help="Build everything eagerly.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, no_gate: bool) -> None:
    """Watch every unit and serve its output, building lazily."""
    from lazybuild.core.config.loader import ConfigError
    from lazybuild.ui.web.server import create_app, run_server

    config = _load(ctx)
    host = host or config.server.host
    port = port or config.server.port

    try:
        app = create_app(config, gate=False if no_gate else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    gate = app.extensions["lazybuild"]["gate"]
    if not ctx.obj.get("quiet"):
        click.echo()
        click.secho(f"⚡ lazybuild — {config.name}", bold=True)
        click.echo(f"   Serving: http://{host}:{port}")
        click.echo(f"   Context: {config.context}")
        for unit in config.units:
            click.echo(f"   • {unit.name}  {unit.output.public_path} → {unit.output.path}")
        if gate is None:
            click.secho("   Gate: off (eager build)", fg="yellow")
        else:
            click.echo(f"   Gate: {gate.policy}")
        click.echo()

    run_server(app, host=host, port=port, debug=ctx.obj.get("debug", False))


# ── build ───────────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def build(ctx: click.Context, as_json: bool) -> None:
    """Run one eager pass of every unit and write the output to disk."""
    from lazybuild.adapters.bundler.compiler import create_compiler
    from lazybuild.adapters.bundler.filesystem import LocalFileSystem
    from lazybuild.core.config.loader import ConfigError

    config = _load(ctx)
    fs = LocalFileSystem()
    try:
        compiler = create_compiler(config, input_fs=fs, output_fs=fs)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    stats = compiler.run()

    if as_json:
        click.echo(json.dumps({"units": [s.to_dict() for s in stats.stats]}, indent=2))
        sys.exit(1 if stats.has_errors() else 0)

    for unit_stats in stats.stats:
        data = unit_stats.to_dict()
        color = "red" if unit_stats.has_errors() else "green"
        click.secho(f"📦 {data['unit']}  ({data['duration_ms']:.0f}ms)", fg=color, bold=True)
        for asset in data["assets"]:
            click.echo(f"   {data['output_path'].rstrip('/')}/{asset}")
        for err in data["errors"]:
            click.secho(f"   ✗ {err}", fg="red")

    if stats.has_errors():
        sys.exit(1)


# ── config ──────────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Build configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate lazybuild.yml."""
    from lazybuild.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Name: {result.config.name}")
        click.echo(f"   Units: {len(result.config.units)}")
        click.echo(f"   Gate: {'on, ' + str(result.config.gate.policy) if result.config.gate.enabled else 'off'}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
