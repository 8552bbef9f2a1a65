"""
Software-management plugin — CLI entrypoint.

Invoked by the device agent, one short-lived process per command:

    sm-plugin list
    sm-plugin prepare
    sm-plugin update-list < actions.tsv
    sm-plugin finalize

stdout carries only protocol output; every log line goes to stderr.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

import click

from smplugin import __version__
from smplugin.core.observability.logging_config import (
    FILE_ENV_VAR,
    FILE_LEVEL_ENV_VAR,
    resolve_level,
    setup_logging,
)

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="sm-plugin")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to plugin.yml (default: $SMP_CONFIG or /etc/sm-plugin/plugin.yml).",
)
@click.option("--backend", "backend_name", default=None, help="Backend to use (apt, pip, mock).")
@click.option("--mock", is_flag=True, help="Use the in-memory mock backend (no real changes).")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    backend_name: str | None,
    mock: bool,
) -> None:
    """Software-management plugin — reconcile installed packages through a backend."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["backend_name"] = "mock" if mock else backend_name

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(FILE_ENV_VAR),
        log_file_level=os.environ.get(FILE_LEVEL_ENV_VAR),
    )


def _fail(message: str, code: int) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)


def _backend(ctx: click.Context):
    """Resolve the backend: preset on the context, or built from config."""
    from smplugin.adapters.registry import default_registry
    from smplugin.core.config.loader import ConfigError, load_config
    from smplugin.core.protocol.report import EXIT_NOT_ATTEMPTED

    preset = ctx.obj.get("backend")
    if preset is not None:
        return preset

    try:
        config = load_config(ctx.obj.get("config_path"))
        name = ctx.obj.get("backend_name") or config.backend
        backend = default_registry().create(name, config)
    except ConfigError as e:
        _fail(str(e), EXIT_NOT_ATTEMPTED)

    ctx.obj["backend"] = backend
    return backend


def _guarded(label: str, fn, *args, **kwargs):
    """Run a use case; an unexpected crash becomes a one-line failure."""
    from smplugin.core.protocol.report import EXIT_FAILED

    try:
        return fn(*args, **kwargs)
    except Exception as e:
        logger.debug("%s crashed", label, exc_info=True)
        _fail(f"{label} failed: {e}", EXIT_FAILED)


def _emit_update(result, as_json: bool) -> None:
    """Print an update/reconcile result and exit with its status."""
    from smplugin.core.protocol.report import format_result_lines

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        _fail(result.error, result.exit_code)

    for line in format_result_lines(result.report):
        click.echo(line)
    sys.exit(result.exit_code)


# ── Query ───────────────────────────────────────────────────────


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List installed modules, one 'name<TAB>version' per line."""
    from smplugin.core.protocol.report import format_state_lines
    from smplugin.core.use_cases.inventory import list_modules

    result = _guarded("list", list_modules, _backend(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        _fail(f"Backend unavailable: {result.error}", result.exit_code)

    for line in format_state_lines(result.state):
        click.echo(line)


# ── Transaction hooks ───────────────────────────────────────────


def _emit_hook(result, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif not result.ok:
        click.secho(f"❌ {result.hook} failed: {result.message}", fg="red", err=True)
    sys.exit(result.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def prepare(ctx: click.Context, as_json: bool) -> None:
    """Run the backend's pre-transaction hook (e.g. refresh indices)."""
    from smplugin.core.use_cases.transaction import run_prepare

    _emit_hook(_guarded("prepare", run_prepare, _backend(ctx)), as_json)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def finalize(ctx: click.Context, as_json: bool) -> None:
    """Run the backend's post-transaction hook (e.g. cleanup)."""
    from smplugin.core.use_cases.transaction import run_finalize

    _emit_hook(_guarded("finalize", run_finalize, _backend(ctx)), as_json)


# ── Updates ─────────────────────────────────────────────────────


@cli.command("update-list")
@click.option("--dry-run", is_flag=True, help="Validate the batch without applying it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update_list(ctx: click.Context, dry_run: bool, as_json: bool) -> None:
    """Apply the action batch read from stdin.

    One action per line: install|remove<TAB>name[<TAB>version[<TAB>file]].
    Prints one result line per action, in input order.
    """
    from smplugin.core.use_cases.update import run_update_list

    backend = _backend(ctx)
    stdin = click.get_binary_stream("stdin")
    _emit_update(_guarded("update-list", run_update_list, backend, stdin, dry_run=dry_run), as_json)


def _single_action(ctx: click.Context, kind: str, name: str, version: str | None, file: str | None):
    from pydantic import ValidationError

    from smplugin.core.models.action import ActionKind, ModuleAction
    from smplugin.core.models.module import SoftwareModule
    from smplugin.core.protocol.batch_input import strip_type_suffix
    from smplugin.core.protocol.report import EXIT_NOT_ATTEMPTED

    backend = _backend(ctx)
    try:
        module = SoftwareModule(
            name=name,
            version=strip_type_suffix(version, backend.name),
            file=file,
        )
    except ValidationError as e:
        _fail(f"Malformed input: {e.errors()[0]['msg']}", EXIT_NOT_ATTEMPTED)
    return backend, ModuleAction(kind=ActionKind(kind), module=module)


@cli.command()
@click.argument("name")
@click.option("--module-version", "version", default=None, help="Exact version to install.")
@click.option("--file", "file", default=None, help="Install from a local package file.")
@click.option("--dry-run", is_flag=True, help="Validate without installing.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    name: str,
    version: str | None,
    file: str | None,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Install one module."""
    from smplugin.core.use_cases.update import apply_actions

    backend, action = _single_action(ctx, "install", name, version, file)
    _emit_update(_guarded(str(action), apply_actions, backend, [action], dry_run=dry_run), as_json)


@cli.command()
@click.argument("name")
@click.option("--module-version", "version", default=None, help="Only remove this version.")
@click.option("--dry-run", is_flag=True, help="Validate without removing.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove(
    ctx: click.Context,
    name: str,
    version: str | None,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Remove one module."""
    from smplugin.core.use_cases.update import apply_actions

    backend, action = _single_action(ctx, "remove", name, version, None)
    _emit_update(_guarded(str(action), apply_actions, backend, [action], dry_run=dry_run), as_json)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Compute and validate without applying.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def reconcile(ctx: click.Context, dry_run: bool, as_json: bool) -> None:
    """Converge on the desired-state snapshot read from stdin.

    One module per line: name[<TAB>version[<TAB>file]]. Installed
    modules missing from the snapshot are removed.
    """
    from smplugin.core.use_cases.reconcile import run_reconcile

    backend = _backend(ctx)
    stdin = click.get_binary_stream("stdin")
    _emit_update(_guarded("reconcile", run_reconcile, backend, stdin, dry_run=dry_run), as_json)


# ── Diagnostics ─────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Show plugin health — configuration and backend tooling."""
    from smplugin.adapters.registry import default_registry
    from smplugin.core.config.loader import ConfigError, find_config_file, load_config
    from smplugin.core.observability.health import check_plugin_health

    source, _ = find_config_file(ctx.obj.get("config_path"))
    backend = ctx.obj.get("backend")
    config_error = None
    if backend is None:
        try:
            config = load_config(ctx.obj.get("config_path"))
            name = ctx.obj.get("backend_name") or config.backend
            backend = default_registry().create(name, config)
        except ConfigError as e:
            config_error = str(e)

    system_health = check_plugin_health(backend, config_source=source, config_error=config_error)

    if as_json:
        click.echo(json.dumps(system_health.to_dict(), indent=2))
    else:
        status_icons = {
            "healthy": ("💚", "green"),
            "degraded": ("🟡", "yellow"),
            "unhealthy": ("🔴", "red"),
            "unknown": ("❔", "white"),
        }
        icon, color = status_icons.get(system_health.status, ("❔", "white"))
        click.secho(f"{icon} Plugin Health: {system_health.status.upper()}", fg=color, bold=True)
        for component in system_health.components:
            c_icon, c_color = status_icons.get(component.status, ("❔", "white"))
            click.secho(f"   {c_icon} {component.name}", fg=c_color, bold=True)
            click.echo(f"      {component.message}")

    if system_health.status == "unhealthy":
        sys.exit(1)


@cli.group()
def config() -> None:
    """Plugin configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate the plugin configuration."""
    from smplugin.adapters.registry import default_registry
    from smplugin.core.config.loader import ConfigError, find_config_file, load_config

    source, _ = find_config_file(ctx.obj.get("config_path"))
    errors: list[str] = []
    cfg = None
    try:
        cfg = load_config(ctx.obj.get("config_path"))
        if cfg.backend not in default_registry().list_backends():
            errors.append(f"Unknown backend '{cfg.backend}'")
    except ConfigError as e:
        errors.append(str(e))

    valid = not errors
    if as_json:
        click.echo(
            json.dumps(
                {
                    "valid": valid,
                    "source": str(source) if source else None,
                    "errors": errors,
                    "config": cfg.model_dump(mode="json") if cfg and valid else None,
                },
                indent=2,
            )
        )
        sys.exit(0 if valid else 1)

    if valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Source: {source or 'built-in defaults'}")
        click.echo(f"   Backend: {cfg.backend}")
        return

    click.secho("❌ Configuration errors:", fg="red", bold=True)
    for err in errors:
        click.echo(f"   • {err}")
    sys.exit(1)


if __name__ == "__main__":
    cli()
