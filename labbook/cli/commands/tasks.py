"""
FILE: labbook/cli/commands/tasks.py
PURPOSE: Task commands (deps)
"""

from typing import Optional

import typer

from ..main import app, console, error_console
from ...core.exceptions import LabbookError, TaskNotFoundError
from ...utils import parse_ids


@app.command()
def deps(
    ctx: typer.Context,
    task_id: int = typer.Argument(..., help="Task ID"),
    set_ids: Optional[str] = typer.Option(
        None, "--set", help="Replace the blockers with these task IDs (comma-separated, '' to clear)"
    ),
):
    """
    Show the tasks blocking a task, or replace them.

    Example:
        labbook deps 4
        labbook deps 4 --set 2,3
        labbook deps 4 --set ""
    """
    store = ctx.obj
    try:
        task = store.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        if set_ids is not None:
            blockers = store.dependencies.set_dependencies(task_id, parse_ids(set_ids))
        else:
            blockers = store.dependencies.get_dependencies(task_id)
        dependents = store.dependencies.dependents(task_id)
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold]{task.id}[/bold] {task.title}")
    if blockers:
        console.print(f"  blocked by: {', '.join(str(b) for b in blockers)}")
    else:
        console.print("  [dim]not blocked[/dim]")
    if dependents:
        console.print(f"  blocks: {', '.join(str(d) for d in dependents)}")
