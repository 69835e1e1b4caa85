"""
FILE: labbook/core/schema.py
PURPOSE: Bring a SQLite store to the current schema on every startup
EXPORTS:
  - SchemaManager(conn, seed_examples=True)
  - SchemaManager.migrate() -> int
  - SchemaManager.version() -> int
  - MIGRATIONS (ordered migration steps)
  - add_column(conn, table, column, decl) -> bool
  - create_index(conn, name, table, columns) -> None
DEPENDENCIES:
  - sqlite3 (stdlib)
  - logging (stdlib)
NOTES:
  - Fresh stores are created in one pass at the latest table shapes
  - Every migration step is idempotent: an existing column/index counts
    as success, so legacy stores of any age converge to the same shape
  - The applied step number is recorded in the one-row schema_meta table;
    stores without it are treated as version 0 and replay every step
  - Failed steps are logged and retried next start; they never abort startup
  - Position backfill and example seeding are best-effort
"""

import logging
import sqlite3
from typing import Callable, List, Optional, Tuple

from .constants import DEFAULT_PROJECT_COLOR, DEFAULT_PRIORITY

logger = logging.getLogger(__name__)


# Current full table shapes. Older stores may have a subset of these
# columns; MIGRATIONS below adds the rest.
TABLES: Tuple[Tuple[str, str], ...] = (
    (
        "schema_meta",
        """
        CREATE TABLE IF NOT EXISTS schema_meta (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL
        )
        """,
    ),
    (
        "projects",
        """
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            primary_path TEXT,
            tags TEXT,
            color TEXT,
            tint INTEGER,
            position INTEGER,
            archived INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            parent_id INTEGER REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "tasks",
        f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            notes TEXT,
            priority INTEGER DEFAULT {DEFAULT_PRIORITY},
            due_date TEXT,
            due_time TEXT,
            start_time TEXT,
            end_time TEXT,
            effort_minutes INTEGER,
            type TEXT,
            reminder_at TEXT,
            recurrence_rule TEXT,
            updated_at TEXT,
            color_tone INTEGER,
            status TEXT NOT NULL DEFAULT 'open' CHECK (status IN ('open','done')),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            completed_at TEXT,
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "links",
        """
        CREATE TABLE IF NOT EXISTS links (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            task_id INTEGER,
            label TEXT NOT NULL,
            target TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('file','folder','url')),
            notes TEXT,
            position INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE,
            FOREIGN KEY(task_id) REFERENCES tasks(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "milestones",
        """
        CREATE TABLE IF NOT EXISTS milestones (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            due_date TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','done','blocked')),
            notes TEXT,
            position INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "notes",
        """
        CREATE TABLE IF NOT EXISTS notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT,
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "papers",
        """
        CREATE TABLE IF NOT EXISTS papers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            authors TEXT,
            year INTEGER,
            doi TEXT,
            url TEXT,
            status TEXT DEFAULT 'to_read' CHECK (status IN ('to_read','reading','read')),
            notes TEXT,
            position INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "experiments",
        """
        CREATE TABLE IF NOT EXISTS experiments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            protocol TEXT,
            variables_json TEXT,
            outcomes TEXT,
            status TEXT DEFAULT 'planned' CHECK (status IN ('planned','running','done','blocked')),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT,
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "task_dependencies",
        """
        CREATE TABLE IF NOT EXISTS task_dependencies (
            task_id INTEGER NOT NULL,
            depends_on_task_id INTEGER NOT NULL,
            PRIMARY KEY (task_id, depends_on_task_id),
            FOREIGN KEY(task_id) REFERENCES tasks(id) ON DELETE CASCADE,
            FOREIGN KEY(depends_on_task_id) REFERENCES tasks(id) ON DELETE CASCADE
        )
        """,
    ),
)

# Indexes over columns every historical table shape already had
BASE_INDEXES = (
    ("idx_tasks_project_id", "tasks", "project_id"),
    ("idx_tasks_status_due", "tasks", "status, due_date"),
    ("idx_milestones_project", "milestones", "project_id, position"),
    ("idx_notes_project", "notes", "project_id"),
    ("idx_papers_project", "papers", "project_id, status"),
    ("idx_experiments_project", "experiments", "project_id, status"),
)

# (table, scope column) pairs whose rows carry a position
POSITIONED_TABLES = (
    ("projects", None),
    ("links", "project_id"),
    ("milestones", "project_id"),
    ("papers", "project_id"),
)


def _already_exists(error: sqlite3.Error) -> bool:
    message = str(error).lower()
    return "duplicate column name" in message or "already exists" in message


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def add_column(conn: sqlite3.Connection, table: str, column: str, decl: str) -> bool:
    """
    Add a column if the table lacks it.

    Returns:
        True if the column was added, False if it was already there
    """
    if column in table_columns(conn, table):
        return False
    try:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")
    except sqlite3.OperationalError as e:
        if _already_exists(e):
            return False
        raise
    logger.info("Schema migration: added column %s.%s", table, column)
    return True


def create_index(conn: sqlite3.Connection, name: str, table: str, columns: str) -> None:
    try:
        conn.execute(f"CREATE INDEX IF NOT EXISTS {name} ON {table}({columns})")
    except sqlite3.OperationalError as e:
        if not _already_exists(e):
            raise


# --- Migration steps (declaration order matters) ---


def _project_hierarchy(conn: sqlite3.Connection) -> None:
    add_column(conn, "projects", "parent_id", "INTEGER REFERENCES projects(id) ON DELETE CASCADE")
    add_column(conn, "projects", "color", "TEXT")
    add_column(conn, "projects", "tint", "INTEGER")


def _project_positions(conn: sqlite3.Connection) -> None:
    add_column(conn, "projects", "position", "INTEGER")
    create_index(conn, "idx_projects_parent_id", "projects", "parent_id")
    create_index(conn, "idx_projects_position", "projects", "position")


def _link_positions(conn: sqlite3.Connection) -> None:
    add_column(conn, "links", "position", "INTEGER")
    add_column(conn, "links", "task_id", "INTEGER REFERENCES tasks(id) ON DELETE CASCADE")
    create_index(conn, "idx_links_project_pos", "links", "project_id, position")
    create_index(conn, "idx_links_task_id", "links", "task_id")


def _task_time_slots(conn: sqlite3.Connection) -> None:
    add_column(conn, "tasks", "due_time", "TEXT")
    add_column(conn, "tasks", "start_time", "TEXT")
    add_column(conn, "tasks", "end_time", "TEXT")
    # Older rows only had a single due_time
    conn.execute(
        "UPDATE tasks SET start_time = due_time WHERE start_time IS NULL AND due_time IS NOT NULL"
    )
    conn.execute(
        "UPDATE tasks SET end_time = due_time WHERE end_time IS NULL AND due_time IS NOT NULL"
    )
    create_index(conn, "idx_tasks_due_time", "tasks", "due_date, due_time")
    create_index(conn, "idx_tasks_start_time", "tasks", "due_date, start_time")


def _task_color_tone(conn: sqlite3.Connection) -> None:
    add_column(conn, "tasks", "color_tone", "INTEGER")


def _task_extended_fields(conn: sqlite3.Connection) -> None:
    add_column(conn, "tasks", "effort_minutes", "INTEGER")
    add_column(conn, "tasks", "type", "TEXT")
    add_column(conn, "tasks", "reminder_at", "TEXT")
    add_column(conn, "tasks", "recurrence_rule", "TEXT")
    add_column(conn, "tasks", "updated_at", "TEXT")
    create_index(conn, "idx_tasks_status_project", "tasks", "status, project_id")
    create_index(conn, "idx_tasks_updated_at", "tasks", "updated_at")


def _paper_positions(conn: sqlite3.Connection) -> None:
    add_column(conn, "papers", "position", "INTEGER")
    create_index(conn, "idx_papers_project_pos", "papers", "project_id, position")


Migration = Tuple[int, str, Callable[[sqlite3.Connection], None]]

MIGRATIONS: Tuple[Migration, ...] = (
    (1, "project hierarchy: parent_id, color, tint", _project_hierarchy),
    (2, "project positions", _project_positions),
    (3, "link positions and task attachment", _link_positions),
    (4, "task start/end time slots", _task_time_slots),
    (5, "task color tone", _task_color_tone),
    (6, "task effort, type, reminder, recurrence, updated_at", _task_extended_fields),
    (7, "paper positions", _paper_positions),
)

LATEST_VERSION = MIGRATIONS[-1][0]


class SchemaManager:
    """Creates, migrates, backfills and seeds a store."""

    def __init__(self, conn: sqlite3.Connection, seed_examples: bool = True):
        self._conn = conn
        self._seed_examples = seed_examples

    def migrate(self) -> int:
        """
        Bring the store to the latest schema.

        Returns:
            The recorded schema version after migration

        Raises:
            sqlite3.Error: If the base tables cannot be created at all
        """
        self._create_tables()
        self._apply_migrations()
        self._backfill_positions()
        if self._seed_examples:
            self._seed()
        return self.version()

    def version(self) -> int:
        try:
            row = self._conn.execute("SELECT version FROM schema_meta WHERE id = 1").fetchone()
        except sqlite3.OperationalError:
            return 0
        return int(row[0]) if row else 0

    # --- steps ---

    def _create_tables(self) -> None:
        for _name, ddl in TABLES:
            self._conn.execute(ddl)
        for name, table, columns in BASE_INDEXES:
            create_index(self._conn, name, table, columns)
        self._conn.commit()

    def _apply_migrations(self) -> None:
        current = self.version()
        reached = current
        failed = False

        for number, description, step in MIGRATIONS:
            if number <= current:
                continue
            try:
                step(self._conn)
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                failed = True
                logger.warning("Schema migration %d (%s) failed: %s", number, description, e)
                continue
            # Only a gap-free prefix of steps is recorded as applied
            if not failed:
                reached = number

        if reached != current:
            self._conn.execute(
                "INSERT INTO schema_meta (id, version) VALUES (1, ?) "
                "ON CONFLICT(id) DO UPDATE SET version = excluded.version",
                (reached,),
            )
            self._conn.commit()
            logger.info("Schema at version %d (was %d)", reached, current)

    def _backfill_positions(self) -> None:
        for table, scope_column in POSITIONED_TABLES:
            try:
                filled = self._backfill_table(table, scope_column)
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                logger.warning("Position backfill for %s skipped: %s", table, e)
                continue
            if filled:
                logger.info("Backfilled %d %s position(s)", filled, table)

    def _backfill_table(self, table: str, scope_column: Optional[str]) -> int:
        if scope_column is None:
            scopes = [None]
        else:
            rows = self._conn.execute(
                f"SELECT DISTINCT {scope_column} FROM {table} WHERE position IS NULL"
            ).fetchall()
            scopes = [row[0] for row in rows]

        filled = 0
        for scope in scopes:
            if scope_column is None:
                where, params = "", ()
            else:
                where, params = f"WHERE {scope_column} = ?", (scope,)

            (start,) = self._conn.execute(
                f"SELECT COALESCE(MAX(position), 0) FROM {table} {where}", params
            ).fetchone()
            null_clause = "AND position IS NULL" if where else "WHERE position IS NULL"
            ids = [
                row[0]
                for row in self._conn.execute(
                    f"SELECT id FROM {table} {where} {null_clause} ORDER BY created_at ASC, id ASC",
                    params,
                ).fetchall()
            ]
            self._conn.executemany(
                f"UPDATE {table} SET position = ? WHERE id = ?",
                [(start + offset, row_id) for offset, row_id in enumerate(ids, start=1)],
            )
            filled += len(ids)
        return filled

    def _seed(self) -> None:
        """Create the welcome project on a completely empty store."""
        try:
            (count,) = self._conn.execute("SELECT COUNT(*) FROM projects").fetchone()
            if count:
                return

            with self._conn:
                cursor = self._conn.execute(
                    """
                    INSERT INTO projects (name, description, primary_path, tags, color, archived, position)
                    VALUES (?, ?, ?, ?, ?, 0, 1)
                    """,
                    (
                        "Welcome Project",
                        "This sample project was created automatically to help you get started.",
                        "",
                        "getting-started,example",
                        DEFAULT_PROJECT_COLOR,
                    ),
                )
                project_id = cursor.lastrowid
                self._conn.executemany(
                    """
                    INSERT INTO tasks (project_id, title, notes, priority, status, updated_at)
                    VALUES (?, ?, ?, ?, 'open', datetime('now'))
                    """,
                    [
                        (project_id, "Create your first real project",
                         "Add a project for each line of work.", 3),
                        (project_id, "Explore features",
                         "Try adding tasks, tags, links and papers.", 2),
                    ],
                )
                self._conn.execute(
                    """
                    INSERT INTO links (project_id, label, target, kind, notes, position)
                    VALUES (?, ?, ?, 'url', ?, 1)
                    """,
                    (project_id, "SQLite Docs", "https://sqlite.org/docs.html",
                     "Reference for the storage engine behind labbook."),
                )
            logger.info("Seeded example project %s", project_id)
        except sqlite3.Error as e:
            logger.warning("Seed step skipped: %s", e)
