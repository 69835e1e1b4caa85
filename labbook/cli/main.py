"""
FILE: labbook/cli/main.py
PURPOSE: Typer-based CLI over the labbook store
EXPORTS:
  - app (Typer application)
  - main() (entry point)
  - version() - Show version
  - init() - Create/migrate the store
  - project_ls() - List projects with tree statistics
  - project_tree() - List tasks of a project tree
  - deps() - Show or replace the blockers of a task
  - export() - Write a snapshot to a JSON file
  - import_() - Load a snapshot from a JSON file
DEPENDENCIES:
  - typer (CLI framework)
  - rich (formatted output)
  - labbook.core (Store)
  - labbook.config, labbook.logging_setup
NOTES:
  - One Store per invocation, created in the callback and handed to
    commands through ctx.obj; it is closed when the command finishes
  - Error messages go to stderr
  - Exit codes: 0=success, 1=error
"""

import sys
from pathlib import Path
from typing import Optional

# Fix Windows console encoding for Unicode characters
if sys.platform == "win32":
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8')

import typer
from rich.console import Console

from .. import __version__
from ..config import get_settings
from ..core import Store
from ..logging_setup import setup_logging

# Typer app setup
app = typer.Typer(
    name="labbook",
    help="Research project and task tracker",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()
error_console = Console(stderr=True)


@app.callback()
def default_command(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", help="Database file (default: ~/.labbook/labbook.db)"),
    no_seed: bool = typer.Option(False, "--no-seed", help="Don't create the example project in a new database"),
):
    """
    Open the store for the invoked command.

    The database is only touched once a command needs it.
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    store = Store(db, seed_examples=False if no_seed else None)
    ctx.obj = store
    ctx.call_on_close(store.close)


# Import command modules to register commands with app
# Commands are decorated with @app.command() in their modules
from .commands import (
    # System commands
    version,
    init,
    # Project commands
    project_ls,
    project_tree,
    # Task commands
    deps,
    # Snapshot commands
    export,
    import_,
)


def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
