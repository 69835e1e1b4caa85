"""
FILE: labbook/formatting.py
PURPOSE: Presentation helpers for the CLI (colors and Rich tables)
EXPORTS:
  - tint_color(base, tint) -> str
  - display_color(project, parent) -> str
  - ProjectFormatter: tables of projects with tree statistics
  - TaskFormatter: tables of tasks annotated with their project
DEPENDENCIES:
  - rich (for table formatting)
  - labbook.core.models (Project, ProjectWithStats, TaskWithProject)
NOTES:
  - The tint ramp lives here, not in the store: the store keeps only the
    tint index, rendering decides what it looks like
"""

from typing import Dict, List, Optional

from rich.table import Table
from rich.text import Text

from .core.constants import DEFAULT_PROJECT_COLOR, TINT_PALETTE_SIZE
from .core.models import Project, ProjectWithStats, TaskWithProject

# Share of the base color kept at each tint; the rest is white
TINT_RATIOS = (0.85, 0.8, 0.7, 0.6, 0.5)


def _parse_hex(value: str):
    digits = (value or DEFAULT_PROJECT_COLOR).lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    try:
        return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return _parse_hex(DEFAULT_PROJECT_COLOR)


def tint_color(base: Optional[str], tint: Optional[int]) -> str:
    """
    Lighten a base color toward white by tint step.

    Args:
        base: '#rrggbb' or '#rgb' (falls back to the default project color)
        tint: Tint index; clamped into the palette

    Returns:
        '#rrggbb'
    """
    index = min(max(tint or 0, 0), TINT_PALETTE_SIZE - 1)
    ratio = TINT_RATIOS[index]
    channels = (round(255 - (255 - c) * ratio) for c in _parse_hex(base))
    return "#" + "".join(f"{c:02x}" for c in channels)


def display_color(project: Project, parent: Optional[Project] = None) -> str:
    """Sub-projects render as a tint of their parent's color."""
    if project.parent_id is not None and parent is not None:
        return tint_color(parent.color, project.tint)
    return project.color or DEFAULT_PROJECT_COLOR


class ProjectFormatter:
    """Project display formatting."""

    @staticmethod
    def create_table(rows: List[ProjectWithStats], title: str = "Projects") -> Table:
        by_id: Dict[int, Project] = {row.project.id: row.project for row in rows}

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", width=5, no_wrap=True)
        table.add_column("Name")
        table.add_column("Tags", style="dim")
        table.add_column("Done", justify="right")
        table.add_column("Overdue", justify="right", style="red")
        table.add_column("Next 7d", justify="right", style="yellow")

        for row in rows:
            project, stats = row.project, row.stats
            color = display_color(project, by_id.get(project.parent_id))
            name = Text("  ↳ " if project.is_subproject else "")
            name.append("● ", style=color)
            name.append(project.name)
            table.add_row(
                str(project.id),
                name,
                ", ".join(project.tag_list),
                f"{stats.completed_tasks}/{stats.total_tasks}",
                str(stats.overdue_tasks or ""),
                str(stats.upcoming_tasks or ""),
            )
        return table


class TaskFormatter:
    """Task display formatting."""

    @staticmethod
    def create_table(tasks: List[TaskWithProject], title: str = "Tasks") -> Table:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", width=6, no_wrap=True)
        table.add_column("Title")
        table.add_column("Project")
        table.add_column("Due", style="yellow")
        table.add_column("P", justify="right", width=2)

        for task in tasks:
            title_text = Text(task.title, style="strike dim" if task.is_done else "")
            if task.project_tint is None:
                color = task.project_color or DEFAULT_PROJECT_COLOR
            else:
                color = tint_color(task.project_color, task.project_tint)
            project = Text(task.project_name, style=color)
            table.add_row(
                str(task.id),
                title_text,
                project,
                task.due_date or "",
                str(task.priority if task.priority is not None else ""),
            )
        return table
