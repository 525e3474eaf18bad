"""
CLI utility helpers: member rendering and error reporting.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

try:
    import typer
    from rich.console import Console
    from rich.table import Table
except ImportError as e:  # pragma: no cover
    raise SystemExit("Missing CLI deps.  Install with:  pip install persistent-enum[cli]") from e

from persistent_enum.errors import PersistentEnumError
from persistent_enum.holder import PersistentEnum

console = Console()
err_console = Console(stderr=True)


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (tuple, list, set, frozenset)):
        return [_plain(v) for v in value]
    return value


def member_rows(holder: PersistentEnum) -> list[dict[str, Any]]:
    """One plain dict per member, required members first."""
    rows = []
    for member in holder.all_values():
        row: dict[str, Any] = {
            "ordinal": member.ordinal,
            "name": member.name,
            "active": holder.is_active(member),
        }
        row.update(_plain(member.attributes))
        rows.append(row)
    return rows


def output_members(holder: PersistentEnum, *, as_json: bool = False) -> None:
    """Render a holder's members as a Rich table or JSON."""
    rows = member_rows(holder)

    if as_json:
        payload = {"enum": holder.identity, "dummy": holder.is_dummy, "members": rows}
        typer.echo(json.dumps(payload, indent=2, default=str))
        return

    if not rows:
        console.print(f"[dim]{holder.identity}: no members.[/dim]")
        return

    _print_table(rows, title=holder.identity + (" (dummy)" if holder.is_dummy else ""))


def output_error(error: PersistentEnumError) -> None:
    """Print an error with its context and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    context = error.context.to_dict()
    for key, value in context.items():
        err_console.print(f"  [dim]{key}[/dim]: {value}")
    raise typer.Exit(code=1)


def _print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    columns: list[str] = []
    for row in rows:
        columns.extend(key for key in row if key not in columns)

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(row.get(column)) for column in columns))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def print_identities(identities: Iterable[str], *, title: str) -> None:
    identities = list(identities)
    console.print(f"[bold]{title}[/bold] ({len(identities)})")
    for identity in identities:
        console.print(f"  • {identity}")


__all__ = [
    "console",
    "err_console",
    "member_rows",
    "output_error",
    "output_members",
    "print_identities",
]
