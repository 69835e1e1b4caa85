"""
FILE: labbook/cli/commands/projects.py
PURPOSE: Project commands (project_ls, project_tree)
"""

import json

import typer

from ..main import app, console, error_console
from ...core.exceptions import LabbookError, ProjectNotFoundError
from ...formatting import ProjectFormatter, TaskFormatter


@app.command("projects")
def project_ls(
    ctx: typer.Context,
    archived: bool = typer.Option(False, "--archived", help="Include archived projects"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List projects with task statistics over each project's tree.

    Example:
        labbook projects
        labbook projects --archived --json
    """
    store = ctx.obj
    try:
        rows = store.tree.projects_with_stats(include_archived=archived)
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps([row.to_dict() for row in rows], indent=2))
        return

    if not rows:
        console.print("[dim]No projects found[/dim]")
        return

    console.print(ProjectFormatter.create_table(rows))
    console.print(f"\n[dim]Total: {len(rows)} project(s)[/dim]")


@app.command("tree")
def project_tree(
    ctx: typer.Context,
    project_id: int = typer.Argument(..., help="Root project ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List every task of a project and its sub-projects.

    Example:
        labbook tree 1
        labbook tree 1 --json
    """
    store = ctx.obj
    try:
        project = store.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        stats = store.tree.stats(project_id)
        tasks = store.tree.tasks(project_id)
    except LabbookError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        payload = {
            "project": project.to_dict(),
            "stats": stats.to_dict(),
            "tasks": [task.to_dict() for task in tasks],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    if not tasks:
        console.print(f"[dim]No tasks in {project.name}[/dim]")
        return

    console.print(TaskFormatter.create_table(tasks, title=project.name))
    console.print(
        f"\n[dim]{stats.completed_tasks}/{stats.total_tasks} done, "
        f"{stats.overdue_tasks} overdue, {stats.upcoming_tasks} due within 7 days[/dim]"
    )
