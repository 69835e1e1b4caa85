"""
FILE: labbook/core/repository.py
PURPOSE: CRUD, partial updates and position ordering per collection
EXPORTS:
  - Repository (base: create/get/list/update/delete)
  - OrderedRepository (adds positions: next_position/reorder/move_up/move_down)
  - ProjectRepository, TaskRepository, LinkRepository
  - MilestoneRepository, PaperRepository
  - NoteRepository, ExperimentRepository
DEPENDENCIES:
  - sqlite3 (stdlib)
  - labbook.core.models (domain dataclasses)
  - labbook.core.exceptions (InvalidInputError, HierarchyCycleError, PersistenceError)
NOTES:
  - Partial updates take a mapping: an absent key leaves the column alone,
    a key mapped to None clears it
  - An empty change set performs no write
  - Positions are max(position in scope) + 1 on create; readers get
    position ASC with NULLs last, then created_at, then id
  - Validation happens before any SQL runs; engine failures on writes are
    re-raised as PersistenceError
  - Cascading deletes are left to the foreign keys (PRAGMA foreign_keys=ON)
"""

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .constants import (
    DEFAULT_PRIORITY,
    DEFAULT_PROJECT_COLOR,
    EXPERIMENT_STATUSES,
    LINK_KINDS,
    MILESTONE_STATUSES,
    PAPER_STATUSES,
    STATUS_DONE,
    STATUS_OPEN,
    TASK_STATUSES,
    TASK_TYPES,
    TINT_PALETTE_SIZE,
)
from .exceptions import HierarchyCycleError, InvalidInputError, PersistenceError
from .models import (
    Experiment,
    Link,
    Milestone,
    Note,
    Paper,
    Project,
    Task,
    TaskWithProject,
)
from ..utils import timestamp

logger = logging.getLogger(__name__)


class Repository:
    """Base repository for one table keyed by an integer id."""

    table: str = ""
    entity: str = ""
    model: Any = None
    # Columns a caller may write; derived columns are not listed
    columns: Tuple[str, ...] = ()
    # Must be supplied (and non-blank) on create
    required: Tuple[str, ...] = ()
    # May be omitted, but never explicitly cleared
    non_nullable: Tuple[str, ...] = ()
    choices: Dict[str, Tuple[str, ...]] = {}
    defaults: Dict[str, Any] = {}
    scope_column: Optional[str] = "project_id"
    order_by: str = "created_at DESC, id DESC"

    def __init__(self, store):
        self._store = store

    @property
    def conn(self) -> sqlite3.Connection:
        return self._store.conn

    # --- validation ---

    def _check_fields(self, values: Mapping[str, Any]) -> None:
        unknown = sorted(set(values) - set(self.columns))
        if unknown:
            raise InvalidInputError(
                f"Unknown field(s) for {self.entity}: {', '.join(unknown)}"
            )

    def _validate(self, values: Dict[str, Any], creating: bool) -> None:
        for name in self.required:
            if creating and name not in values:
                raise InvalidInputError(f"{self.entity.capitalize()} {name} is required")
            if name in values:
                value = values[name]
                if isinstance(value, str):
                    value = value.strip()
                    values[name] = value
                if value is None or value == "":
                    raise InvalidInputError(f"{self.entity.capitalize()} {name} cannot be empty")

        for name in self.non_nullable:
            if name in values and values[name] is None:
                raise InvalidInputError(f"{self.entity.capitalize()} {name} cannot be cleared")

        for name, allowed in self.choices.items():
            value = values.get(name)
            if value is not None and value not in allowed:
                raise InvalidInputError(
                    f"Invalid {name} '{value}'. Must be one of: {', '.join(allowed)}"
                )

    # --- hooks ---

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return values

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        return changes

    # --- CRUD ---

    def create(self, fields: Mapping[str, Any]) -> int:
        """
        Insert a row.

        Args:
            fields: Column values; omitted columns take the collection defaults

        Returns:
            The new row id

        Raises:
            InvalidInputError: Missing required field, unknown field, bad choice
            PersistenceError: The insert failed (constraint, missing parent)
        """
        values = dict(fields)
        self._check_fields(values)
        self._validate(values, creating=True)
        values = self._prepare_create({**self.defaults, **values})
        return self._insert(values)

    def _insert(self, values: Mapping[str, Any]) -> int:
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            cursor = self.conn.execute(
                f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not create {self.entity}: {e}") from e
        logger.debug("Created %s %s", self.entity, cursor.lastrowid)
        return cursor.lastrowid

    def get(self, row_id: int):
        """
        Fetch single row by ID.

        Returns:
            Model object if found, None otherwise
        """
        row = self.conn.execute(
            f"SELECT * FROM {self.table} WHERE id = ?", (row_id,)
        ).fetchone()
        return self.model.from_row(row) if row else None

    def list(self, project_id: Optional[int] = None) -> list:
        if project_id is None or self.scope_column is None:
            return self._select()
        return self._select(f"{self.scope_column} = ?", (project_id,))

    def _select(self, where: str = "", params: Iterable[Any] = (), order_by: Optional[str] = None) -> list:
        sql = f"SELECT * FROM {self.table}"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {order_by or self.order_by}"
        return [self.model.from_row(row) for row in self.conn.execute(sql, tuple(params)).fetchall()]

    def update(self, row_id: int, changes: Mapping[str, Any]) -> bool:
        """
        Apply a partial update.

        Args:
            row_id: Row to update
            changes: Only the keys present are written; None clears a column

        Returns:
            True if a row was written, False for an empty change set or
            unknown id
        """
        values = dict(changes)
        self._check_fields(values)
        self._validate(values, creating=False)
        values = self._prepare_update(row_id, values)
        if not values:
            return False
        return self._write(row_id, values)

    def _write(self, row_id: int, values: Mapping[str, Any]) -> bool:
        assignments = ", ".join(f"{name} = ?" for name in values)
        try:
            cursor = self.conn.execute(
                f"UPDATE {self.table} SET {assignments} WHERE id = ?",
                (*values.values(), row_id),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not update {self.entity} {row_id}: {e}") from e
        return cursor.rowcount > 0

    def delete(self, row_id: int) -> bool:
        """Delete by ID. Dependent rows go with it via ON DELETE CASCADE."""
        try:
            cursor = self.conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (row_id,))
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Could not delete {self.entity} {row_id}: {e}") from e
        return cursor.rowcount > 0

    def count(self) -> int:
        (n,) = self.conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()
        return int(n)


class OrderedRepository(Repository):
    """Repository whose rows carry a user-rearrangeable position per scope."""

    order_by = "position IS NULL, position ASC, created_at ASC, id ASC"
    # Ignore a caller-supplied position and always append
    always_append = False

    def _scope_where(self, scope: Any) -> Tuple[str, Tuple[Any, ...]]:
        if self.scope_column is None:
            return "1 = 1", ()
        return f"{self.scope_column} = ?", (scope,)

    def _bucket_where(self, row: sqlite3.Row) -> Tuple[str, Tuple[Any, ...]]:
        """Rows that are visible siblings of `row` (used by move_up/move_down)."""
        scope = row[self.scope_column] if self.scope_column else None
        return self._scope_where(scope)

    def next_position(self, scope: Any = None) -> int:
        where, params = self._scope_where(scope)
        (max_position,) = self.conn.execute(
            f"SELECT COALESCE(MAX(position), 0) FROM {self.table} WHERE {where}", params
        ).fetchone()
        return int(max_position) + 1

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        values = super()._prepare_create(values)
        if self.always_append or values.get("position") is None:
            scope = values.get(self.scope_column) if self.scope_column else None
            values["position"] = self.next_position(scope)
        return values

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = super()._prepare_update(row_id, changes)
        if self.scope_column is None or self.scope_column not in changes:
            return changes
        if "position" in changes and not self.always_append:
            return changes

        row = self.conn.execute(
            f"SELECT {self.scope_column} FROM {self.table} WHERE id = ?", (row_id,)
        ).fetchone()
        new_scope = changes[self.scope_column]
        # Moving to another scope appends there; the old position would collide
        if row is not None and row[0] != new_scope:
            changes["position"] = self.next_position(new_scope)
        return changes

    def reorder(self, id_a: int, id_b: int) -> None:
        """
        Swap the positions of two sibling rows.

        Raises:
            InvalidInputError: If either row doesn't exist
        """
        rows = {
            row["id"]: row["position"]
            for row in self.conn.execute(
                f"SELECT id, position FROM {self.table} WHERE id IN (?, ?)", (id_a, id_b)
            ).fetchall()
        }
        for row_id in (id_a, id_b):
            if row_id not in rows:
                raise InvalidInputError(f"Cannot reorder: {self.entity} {row_id} not found")

        try:
            with self.conn:
                self.conn.execute(
                    f"UPDATE {self.table} SET position = ? WHERE id = ?", (rows[id_b], id_a)
                )
                self.conn.execute(
                    f"UPDATE {self.table} SET position = ? WHERE id = ?", (rows[id_a], id_b)
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not reorder {self.entity} {id_a}/{id_b}: {e}") from e

    def move_up(self, row_id: int) -> bool:
        return self._move(row_id, "<", "DESC")

    def move_down(self, row_id: int) -> bool:
        return self._move(row_id, ">", "ASC")

    def _move(self, row_id: int, comparison: str, direction: str) -> bool:
        row = self.conn.execute(f"SELECT * FROM {self.table} WHERE id = ?", (row_id,)).fetchone()
        if row is None or row["position"] is None:
            return False

        where, params = self._bucket_where(row)
        neighbour = self.conn.execute(
            f"""
            SELECT id FROM {self.table}
            WHERE {where} AND position IS NOT NULL AND position {comparison} ?
            ORDER BY position {direction}, id {direction}
            LIMIT 1
            """,
            (*params, row["position"]),
        ).fetchone()
        if neighbour is None:
            return False

        self.reorder(row_id, neighbour["id"])
        return True


# --- Projects ---


class ProjectRepository(OrderedRepository):
    table = "projects"
    entity = "project"
    model = Project
    columns = (
        "name", "description", "primary_path", "tags", "color",
        "tint", "archived", "parent_id", "position",
    )
    required = ("name",)
    non_nullable = ("archived",)
    defaults = {
        "description": "",
        "primary_path": "",
        "tags": "",
        "color": DEFAULT_PROJECT_COLOR,
        "archived": 0,
    }
    # Positions span the whole collection
    scope_column = None

    def _normalize(self, values: Dict[str, Any]) -> None:
        tint = values.get("tint")
        if tint is not None and not (isinstance(tint, int) and 0 <= tint < TINT_PALETTE_SIZE):
            raise InvalidInputError(f"Tint must be between 0 and {TINT_PALETTE_SIZE - 1}")
        if "archived" in values:
            values["archived"] = int(bool(values["archived"]))

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        self._normalize(values)
        if values.get("parent_id") is not None and "tint" not in values:
            values["tint"] = self._store.tints.allocate(values["parent_id"])
        return super()._prepare_create(values)

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        self._normalize(changes)
        parent_id = changes.get("parent_id")
        if parent_id is not None:
            if parent_id == row_id or row_id in self._store.tree.ancestors(parent_id):
                raise HierarchyCycleError(row_id, parent_id)
        return changes

    def list(self, include_archived: bool = False) -> List[Project]:
        if include_archived:
            return self._select()
        return self._select("archived = 0")

    def roots(self, include_archived: bool = False) -> List[Project]:
        where = "parent_id IS NULL"
        if not include_archived:
            where += " AND archived = 0"
        return self._select(where)

    def children(self, parent_id: int) -> List[Project]:
        return self._select("parent_id = ?", (parent_id,))

    def search(self, query: str) -> List[Project]:
        """Substring match on name, description and tags (non-archived only)."""
        like = f"%{query}%"
        return self._select(
            "archived = 0 AND (name LIKE ? OR description LIKE ? OR tags LIKE ?)",
            (like, like, like),
            order_by="created_at DESC, id DESC",
        )

    def set_primary_color(self, project_id: int, color: str, retint: bool = True) -> None:
        """
        Change a project's color; by default also re-spread its sub-project tints.
        """
        if retint:
            self._store.tints.retint_all(project_id, color)
        else:
            self.update(project_id, {"color": color})


# --- Tasks ---


_TASK_WITH_PROJECT = """
    SELECT t.*,
           p.name AS project_name,
           COALESCE(pp.color, p.color) AS project_color,
           COALESCE(CASE WHEN p.parent_id IS NOT NULL THEN p.tint END, t.color_tone) AS project_tint
    FROM tasks t
    JOIN projects p ON t.project_id = p.id
    LEFT JOIN projects pp ON p.parent_id = pp.id
"""


class TaskRepository(Repository):
    """
    Tasks are not position-ordered; lists are newest first.

    Status and completed_at are kept consistent here: a transition to
    'done' stamps completed_at, a transition to 'open' clears it. Every
    non-empty change also stamps updated_at.
    """

    table = "tasks"
    entity = "task"
    model = Task
    columns = (
        "project_id", "title", "notes", "priority", "due_date", "due_time",
        "start_time", "end_time", "color_tone", "status", "effort_minutes",
        "type", "reminder_at", "recurrence_rule",
    )
    required = ("project_id", "title")
    non_nullable = ("status",)
    choices = {"status": TASK_STATUSES, "type": TASK_TYPES}
    defaults = {"notes": "", "priority": DEFAULT_PRIORITY, "status": STATUS_OPEN}

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        # due_time is the legacy single slot; keep it in step with start_time
        start_time = values.get("start_time")
        if values.get("due_time") is None:
            values["due_time"] = start_time
        if values.get("end_time") is None:
            values["end_time"] = start_time

        now = timestamp()
        values["updated_at"] = now
        if values["status"] == STATUS_DONE:
            values["completed_at"] = now
        return values

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not changes:
            return changes

        now = timestamp()
        if "status" in changes:
            current = self.conn.execute(
                "SELECT status, completed_at FROM tasks WHERE id = ?", (row_id,)
            ).fetchone()
            if changes["status"] == STATUS_DONE:
                already_done = (
                    current is not None
                    and current["status"] == STATUS_DONE
                    and current["completed_at"] is not None
                )
                if not already_done:
                    changes["completed_at"] = now
            else:
                changes["completed_at"] = None

        changes["updated_at"] = now
        return changes

    def list_filtered(
        self,
        status: Optional[str] = None,
        due_before: Optional[str] = None,
        min_priority: Optional[int] = None,
        project_id: Optional[int] = None,
    ) -> List[TaskWithProject]:
        """
        Tasks across projects, annotated with the project name.

        Ordered by due date, start time, priority (high first), newest first.
        """
        where, params = [], []
        if status:
            where.append("t.status = ?")
            params.append(status)
        if due_before:
            where.append("t.due_date IS NOT NULL AND t.due_date <= ?")
            params.append(due_before)
        if min_priority is not None:
            where.append("t.priority >= ?")
            params.append(min_priority)
        if project_id is not None:
            where.append("t.project_id = ?")
            params.append(project_id)

        sql = _TASK_WITH_PROJECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += (
            " ORDER BY t.due_date IS NULL, t.due_date ASC,"
            " COALESCE(t.start_time, t.due_time) ASC, t.priority DESC, t.created_at DESC, t.id DESC"
        )
        return [TaskWithProject.from_row(row) for row in self.conn.execute(sql, params).fetchall()]

    def in_range(self, start_date: str, end_date: str, include_done: bool = False) -> List[TaskWithProject]:
        """Dated tasks between two dates, inclusive; sub-projects inherit the parent's color."""
        sql = _TASK_WITH_PROJECT + " WHERE t.due_date IS NOT NULL AND t.due_date >= ? AND t.due_date <= ?"
        if not include_done:
            sql += " AND t.status = 'open'"
        sql += (
            " ORDER BY t.due_date ASC, COALESCE(t.start_time, t.due_time) ASC,"
            " t.priority DESC, t.created_at DESC, t.id DESC"
        )
        rows = self.conn.execute(sql, (start_date, end_date)).fetchall()
        return [TaskWithProject.from_row(row) for row in rows]

    def search(self, query: str) -> List[TaskWithProject]:
        like = f"%{query}%"
        rows = self.conn.execute(
            _TASK_WITH_PROJECT
            + " WHERE t.title LIKE ? OR t.notes LIKE ? ORDER BY t.created_at DESC, t.id DESC",
            (like, like),
        ).fetchall()
        return [TaskWithProject.from_row(row) for row in rows]


# --- Project artifacts ---


class LinkRepository(OrderedRepository):
    """
    Links are ordered per project. Links attached to a task share the
    project's position sequence but are listed separately, unordered.
    """

    table = "links"
    entity = "link"
    model = Link
    columns = ("project_id", "task_id", "label", "target", "kind", "notes", "position")
    required = ("project_id", "label", "target", "kind")
    choices = {"kind": LINK_KINDS}
    defaults = {"notes": ""}
    always_append = True

    def _bucket_where(self, row: sqlite3.Row) -> Tuple[str, Tuple[Any, ...]]:
        if row["task_id"]:
            return "task_id = ?", (row["task_id"],)
        return "project_id = ? AND (task_id IS NULL OR task_id = 0)", (row["project_id"],)

    def list(self, project_id: int) -> List[Link]:
        """Project-level links (not attached to a task), in position order."""
        return self._select(
            "project_id = ? AND (task_id IS NULL OR task_id = 0)", (project_id,)
        )

    def for_task(self, task_id: int) -> List[Link]:
        return self._select("task_id = ?", (task_id,), order_by="created_at DESC, id DESC")

    def search(self, query: str) -> List[Link]:
        like = f"%{query}%"
        return self._select(
            "label LIKE ? OR target LIKE ? OR notes LIKE ?",
            (like, like, like),
            order_by="created_at DESC, id DESC",
        )


class MilestoneRepository(OrderedRepository):
    table = "milestones"
    entity = "milestone"
    model = Milestone
    columns = ("project_id", "title", "due_date", "status", "notes", "position")
    required = ("project_id", "title")
    non_nullable = ("status",)
    choices = {"status": MILESTONE_STATUSES}
    defaults = {"status": "pending", "notes": ""}


class PaperRepository(OrderedRepository):
    table = "papers"
    entity = "paper"
    model = Paper
    columns = ("project_id", "title", "authors", "year", "doi", "url", "status", "notes", "position")
    required = ("project_id", "title")
    choices = {"status": PAPER_STATUSES}
    defaults = {"authors": "", "doi": "", "url": "", "status": "to_read", "notes": ""}


class NoteRepository(Repository):
    """
    Project notes. The UI keeps one logical note per project, the table
    allows several: the most recently updated one is canonical.
    """

    table = "notes"
    entity = "note"
    model = Note
    columns = ("project_id", "content")
    required = ("project_id",)
    non_nullable = ("content",)
    defaults = {"content": ""}
    order_by = "updated_at IS NULL, updated_at DESC, created_at DESC, id DESC"

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        values["updated_at"] = timestamp()
        return values

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        if changes:
            changes["updated_at"] = timestamp()
        return changes

    def latest(self, project_id: int) -> Optional[Note]:
        notes = self.list(project_id)
        return notes[0] if notes else None

    def upsert(self, project_id: int, content: str) -> int:
        """Overwrite the canonical note, creating it if the project has none."""
        note = self.latest(project_id)
        if note is None:
            return self.create({"project_id": project_id, "content": content})
        self.update(note.id, {"content": content})
        return note.id


class ExperimentRepository(Repository):
    table = "experiments"
    entity = "experiment"
    model = Experiment
    columns = ("project_id", "name", "protocol", "variables_json", "outcomes", "status")
    required = ("project_id", "name")
    choices = {"status": EXPERIMENT_STATUSES}
    defaults = {"protocol": "", "variables_json": "", "outcomes": "", "status": "planned"}

    @staticmethod
    def _encode_variables(values: Dict[str, Any]) -> None:
        variables = values.get("variables_json")
        if variables is not None and not isinstance(variables, str):
            values["variables_json"] = json.dumps(variables)

    def _prepare_create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        self._encode_variables(values)
        values["updated_at"] = timestamp()
        return values

    def _prepare_update(self, row_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        if changes:
            self._encode_variables(changes)
            changes["updated_at"] = timestamp()
        return changes
