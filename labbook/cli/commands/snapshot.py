"""
FILE: labbook/cli/commands/snapshot.py
PURPOSE: Snapshot file commands (export, import)
NOTES:
  - The store only produces/consumes snapshots in memory; the JSON file
    lives here
"""

import json
from pathlib import Path

import typer

from ..main import app, console, error_console
from ...core.exceptions import LabbookError


def _summary(counts: dict) -> str:
    return ", ".join(f"{n} {name}" for name, n in counts.items() if n)


@app.command()
def export(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Snapshot file to write"),
):
    """
    Write every collection to a JSON snapshot.

    Example:
        labbook export backup.json
    """
    store = ctx.obj
    try:
        snapshot = store.snapshot.export_all()
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        file.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
    except OSError as e:
        error_console.print(f"[red]Error:[/red] Cannot write {file}: {e}")
        raise typer.Exit(1)

    counts = {name: len(rows) for name, rows in snapshot.items()}
    console.print(f"[green]✓[/green] Exported {_summary(counts) or 'an empty store'} to {file}")


@app.command("import")
def import_(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Snapshot file to read"),
    force: bool = typer.Option(False, "--force", help="Import even if the store already has projects"),
):
    """
    Load a JSON snapshot, keeping its ids.

    Rows are inserted as-is, nothing is merged. Importing into a store that
    already has data usually fails on an id collision, so this refuses
    unless --force is given. Use --no-seed for a fresh database.

    Example:
        labbook --db ./restored.db --no-seed import backup.json
    """
    store = ctx.obj
    try:
        snapshot = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] Cannot read {file}: {e}")
        raise typer.Exit(1)

    try:
        if store.projects.count() and not force:
            error_console.print(
                "[red]Error:[/red] Store is not empty (use --force, or --no-seed with a new --db)"
            )
            raise typer.Exit(1)
        counts = store.snapshot.import_all(snapshot)
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Imported {_summary(counts) or 'nothing'} from {file}")
