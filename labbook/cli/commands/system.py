"""
FILE: labbook/cli/commands/system.py
PURPOSE: System commands (version, init)
"""

import typer

# Import shared objects from main module
# These will be available after main.py imports this module
from ..main import app, console, error_console, __version__
from ...core.exceptions import LabbookError
from ...core.schema import LATEST_VERSION


@app.command()
def version():
    """Show labbook version."""
    console.print(f"labbook v{__version__}")


@app.command()
def init(ctx: typer.Context):
    """
    Create the database if needed and bring its schema up to date.

    Safe to run repeatedly.

    Example:
        labbook init
        labbook --db ./lab.db init
    """
    store = ctx.obj
    try:
        store.initialize()
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Store ready at {store.path}")
    if store.schema_version == LATEST_VERSION:
        console.print(f"[dim]Schema version {store.schema_version}[/dim]")
    else:
        console.print(
            f"[yellow]Schema version {store.schema_version} of {LATEST_VERSION}; "
            "some migrations failed and will be retried (see log)[/yellow]"
        )
