"""
Root Typer application for the persistent-enum CLI.

Commands:
    show        List the rows of an enumeration table (read-only)
    sync        Re-synchronize one enumeration named ``module:attr``
    reload-all  Re-resolve and re-synchronize every registered enumeration
    config      Show the effective settings
"""

from __future__ import annotations

import importlib
import json
import sys

try:
    import typer
    from typer import Typer
except ImportError:  # pragma: no cover
    print("typer is required for the CLI.  Install with:  pip install persistent-enum[cli]")
    sys.exit(1)

from sqlalchemy import make_url

from persistent_enum.cli.utils import console, err_console, output_error, output_members, print_identities
from persistent_enum.errors import PersistentEnumError
from persistent_enum.holder import cache_records
from persistent_enum.logging import configure_logging
from persistent_enum.orm import create_enum_engine
from persistent_enum.registry import reload_enumerations, resolve_enumeration
from persistent_enum.settings import get_settings

app = Typer(
    name="persistent-enum",
    help="persistent-enum — database-backed enumerations.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("persistent-enum")
        except PackageNotFoundError:
            from persistent_enum import __version__ as v
        typer.echo(f"persistent-enum {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """persistent-enum CLI — inspect and synchronize enumeration tables."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("show")
def show(
    table: str = typer.Option(..., "--table", "-t", help="Enumeration table name."),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL (default: settings)."),
    name_attr: str = typer.Option("name", "--name-attr", help="Column holding member names."),
    as_json: bool = typer.Option(False, "--json", help="Output JSON."),
) -> None:
    """List persisted members without writing anything."""
    engine = create_enum_engine(database)
    try:
        holder = cache_records(table, bind=engine, name_attr=name_attr, identity=table)
    finally:
        engine.dispose()

    if holder is None:
        err_console.print(f"[bold red]Error[/bold red]: table '{table}' is not available")
        raise typer.Exit(code=1)
    output_members(holder, as_json=as_json)


@app.command("sync")
def sync(
    target: str = typer.Argument(..., help="Enumeration as module:attr, e.g. app.models:Color"),
    as_json: bool = typer.Option(False, "--json", help="Output JSON."),
) -> None:
    """Import an enumeration, re-synchronize it and list its members."""
    try:
        holder = resolve_enumeration(target)
        holder.reinitialize()
    except PersistentEnumError as exc:
        output_error(exc)
    output_members(holder, as_json=as_json)


@app.command("reload-all")
def reload_all(
    modules: list[str] = typer.Option(
        [], "--import", "-i", help="Module to import first (repeatable); importing registers its enums."
    ),
) -> None:
    """Re-resolve and re-synchronize every registered enumeration."""
    try:
        for module in modules:
            importlib.import_module(module)
        identities = reload_enumerations()
    except ImportError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc}")
        raise typer.Exit(code=1) from exc
    except PersistentEnumError as exc:
        output_error(exc)
    print_identities(identities, title="Reinitialized")


@app.command("config")
def show_config(
    as_json: bool = typer.Option(False, "--json", help="Output JSON."),
) -> None:
    """Show the effective settings."""
    config = get_settings().model_dump()
    config["database_url"] = make_url(config["database_url"]).render_as_string(hide_password=True)
    if as_json:
        typer.echo(json.dumps(config, indent=2))
        return
    for key, value in sorted(config.items()):
        console.print(f"PERSISTENT_ENUM_{key.upper()}={json.dumps(value) if isinstance(value, list) else value}")
