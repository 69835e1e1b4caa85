"""
FILE: labbook/core/models.py
PURPOSE: Domain models for projects, tasks and project artifacts
EXPORTS:
  - Project, Task, Link, Milestone, Note, Paper, Experiment (dataclasses)
  - TaskWithProject (Task annotated with its owning project)
  - ProjectStats, ProjectWithStats
DEPENDENCIES:
  - dataclasses (stdlib)
  - json (stdlib)
  - typing (stdlib)
NOTES:
  - All models have from_row() for SQLite row conversion
  - All models have to_dict() / to_json() for serialization
  - Columns missing from an older row (pre-migration) fall back to defaults
  - Timestamps stored as ISO-8601 strings
"""

from dataclasses import dataclass, asdict, fields
from typing import Optional
import json


class RowModel:
    """Shared row conversion for the dataclass models below."""

    @classmethod
    def from_row(cls, row):
        """Convert SQLite row (or mapping) to a model object."""
        keys = set(row.keys())
        values = {f.name: row[f.name] for f in fields(cls) if f.name in keys}
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        """Serialize model to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


@dataclass
class Project(RowModel):
    """A project, optionally nested under a parent project."""

    id: int
    name: str
    description: Optional[str] = None
    primary_path: Optional[str] = None
    tags: Optional[str] = None
    color: Optional[str] = None
    tint: Optional[int] = None
    position: Optional[int] = None
    archived: int = 0
    parent_id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def tag_list(self) -> list:
        return [t.strip() for t in (self.tags or "").split(",") if t.strip()]

    @property
    def is_subproject(self) -> bool:
        return self.parent_id is not None


@dataclass
class Task(RowModel):
    """A task belonging to exactly one project."""

    id: int
    project_id: int
    title: str
    notes: Optional[str] = None
    priority: int = 3
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    color_tone: Optional[int] = None
    status: str = "open"
    effort_minutes: Optional[int] = None
    type: Optional[str] = None
    reminder_at: Optional[str] = None
    recurrence_rule: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.status == "done"


@dataclass
class TaskWithProject(Task):
    """Task row joined with the display fields of its project."""

    project_name: str = ""
    project_color: Optional[str] = None
    project_tint: Optional[int] = None


@dataclass
class Link(RowModel):
    """A file, folder or URL attached to a project (and maybe a task)."""

    id: int
    project_id: int
    label: str
    target: str
    kind: str
    task_id: Optional[int] = None
    notes: Optional[str] = None
    position: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class Milestone(RowModel):
    id: int
    project_id: int
    title: str
    due_date: Optional[str] = None
    status: str = "pending"
    notes: Optional[str] = None
    position: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class Note(RowModel):
    id: int
    project_id: int
    content: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Paper(RowModel):
    """An entry in a project's reading list."""

    id: int
    project_id: int
    title: str
    authors: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    status: str = "to_read"
    notes: Optional[str] = None
    position: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class Experiment(RowModel):
    """An experiment record; variables_json is stored verbatim."""

    id: int
    project_id: int
    name: str
    protocol: Optional[str] = None
    variables_json: Optional[str] = None
    outcomes: Optional[str] = None
    status: str = "planned"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class ProjectStats(RowModel):
    """Task counts over a project tree."""

    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    upcoming_tasks: int = 0

    def __add__(self, other: "ProjectStats") -> "ProjectStats":
        return ProjectStats(
            total_tasks=self.total_tasks + other.total_tasks,
            completed_tasks=self.completed_tasks + other.completed_tasks,
            overdue_tasks=self.overdue_tasks + other.overdue_tasks,
            upcoming_tasks=self.upcoming_tasks + other.upcoming_tasks,
        )


@dataclass
class ProjectWithStats:
    project: Project
    stats: ProjectStats

    def to_dict(self) -> dict:
        data = self.project.to_dict()
        data.update(self.stats.to_dict())
        return data
