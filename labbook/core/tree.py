"""
FILE: labbook/core/tree.py
PURPOSE: Statistics and task lists over a project and all its descendants
EXPORTS:
  - TreeAggregator(store)
  - closure(project_id) -> Set[int]
  - ancestors(project_id) -> List[int]
  - stats(project_id, today) -> ProjectStats
  - tasks(project_id) -> List[TaskWithProject]
  - projects_with_stats(include_archived, today) -> List[ProjectWithStats]
DEPENDENCIES:
  - datetime (stdlib)
  - labbook.core.models (ProjectStats, ProjectWithStats, TaskWithProject)
NOTES:
  - The closure is a fixed-point expansion over parent_id; the visited set
    keeps it finite even if a cycle slipped into the table
  - Overdue/upcoming are evaluated against the caller's date, never stored
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional, Set

from .constants import UPCOMING_WINDOW_DAYS
from .models import ProjectStats, ProjectWithStats, TaskWithProject
from ..utils import today as current_date


def _placeholders(values: Iterable) -> str:
    return ", ".join("?" for _ in values)


class TreeAggregator:
    def __init__(self, store):
        self._store = store

    def closure(self, project_id: int) -> Set[int]:
        """The project itself plus every transitive sub-project."""
        found = {project_id}
        frontier = {project_id}
        while frontier:
            ids = sorted(frontier)
            rows = self._store.conn.execute(
                f"SELECT id FROM projects WHERE parent_id IN ({_placeholders(ids)})", ids
            ).fetchall()
            frontier = {row["id"] for row in rows} - found
            found |= frontier
        return found

    def ancestors(self, project_id: int) -> List[int]:
        """Parent, grandparent, ... of a project (nearest first)."""
        chain = []
        seen = {project_id}
        current = project_id
        while True:
            row = self._store.conn.execute(
                "SELECT parent_id FROM projects WHERE id = ?", (current,)
            ).fetchone()
            if row is None or row["parent_id"] is None or row["parent_id"] in seen:
                return chain
            current = row["parent_id"]
            seen.add(current)
            chain.append(current)

    def stats(self, project_id: int, today: Optional[date] = None) -> ProjectStats:
        """
        Task counts over the project tree.

        Args:
            project_id: Root of the tree
            today: Reference date for overdue/upcoming (default: today)

        Returns:
            ProjectStats with total, completed, overdue (open, due before
            today) and upcoming (open, due no later than today + 7 days,
            overdue tasks included)
        """
        today = today or current_date()
        horizon = today + timedelta(days=UPCOMING_WINDOW_DAYS)
        ids = sorted(self.closure(project_id))

        row = self._store.conn.execute(
            f"""
            SELECT
                COUNT(*) AS total_tasks,
                COALESCE(SUM(status = 'done'), 0) AS completed_tasks,
                COALESCE(SUM(status = 'open' AND due_date IS NOT NULL
                             AND due_date < ?), 0) AS overdue_tasks,
                COALESCE(SUM(status = 'open' AND due_date IS NOT NULL
                             AND due_date <= ?), 0) AS upcoming_tasks
            FROM tasks
            WHERE project_id IN ({_placeholders(ids)})
            """,
            (today.isoformat(), horizon.isoformat(), *ids),
        ).fetchone()
        return ProjectStats.from_row(row)

    def tasks(self, project_id: int) -> List[TaskWithProject]:
        """Every task in the project tree, newest first, with its project's name."""
        ids = sorted(self.closure(project_id))
        rows = self._store.conn.execute(
            f"""
            SELECT t.*,
                   p.name AS project_name,
                   COALESCE(pp.color, p.color) AS project_color,
                   COALESCE(CASE WHEN p.parent_id IS NOT NULL THEN p.tint END,
                            t.color_tone) AS project_tint
            FROM tasks t
            JOIN projects p ON p.id = t.project_id
            LEFT JOIN projects pp ON p.parent_id = pp.id
            WHERE t.project_id IN ({_placeholders(ids)})
            ORDER BY t.created_at DESC, t.id DESC
            """,
            ids,
        ).fetchall()
        return [TaskWithProject.from_row(row) for row in rows]

    def projects_with_stats(
        self, include_archived: bool = False, today: Optional[date] = None
    ) -> List[ProjectWithStats]:
        return [
            ProjectWithStats(project=project, stats=self.stats(project.id, today))
            for project in self._store.projects.list(include_archived=include_archived)
        ]
