"""
FILE: labbook/core/snapshot.py
PURPOSE: Dump every collection to plain data and load it back
EXPORTS:
  - SnapshotExchanger(store)
  - export_all() -> Dict[str, List[Dict]]
  - import_all(snapshot) -> Dict[str, int]
DEPENDENCIES:
  - sqlite3 (stdlib)
NOTES:
  - Rows are copied uninterpreted, ids and timestamps included
  - Import never merges: into a non-empty store it either collides on ids
    or duplicates entities; deciding that is the caller's job
  - The whole payload is validated before the first insert; each
    collection is committed as it completes, with no rollback of earlier
    collections if a later one fails
  - Writing the snapshot to a file belongs to the caller (see labbook.cli)
"""

import logging
import sqlite3
from typing import Any, Dict, List, Mapping

from .constants import SNAPSHOT_COLLECTIONS
from .exceptions import PersistenceError, SnapshotError
from .schema import table_columns

logger = logging.getLogger(__name__)

_EXPORT_ORDER = {"task_dependencies": "task_id, depends_on_task_id"}


def _parents_first(rows: List[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Order project rows so each parent is inserted before its children."""
    ids = {row.get("id") for row in rows}
    emitted = set()
    ordered = []
    pending = list(rows)
    while pending:
        remaining = []
        for row in pending:
            parent = row.get("parent_id")
            if parent is None or parent not in ids or parent in emitted:
                ordered.append(row)
                emitted.add(row.get("id"))
            else:
                remaining.append(row)
        if len(remaining) == len(pending):
            # Cyclic parents: let the engine reject them
            ordered.extend(remaining)
            break
        pending = remaining
    return ordered


class SnapshotExchanger:
    def __init__(self, store):
        self._store = store

    def export_all(self) -> Dict[str, List[Dict[str, Any]]]:
        conn = self._store.conn
        snapshot = {}
        for name in SNAPSHOT_COLLECTIONS:
            order = _EXPORT_ORDER.get(name, "id")
            rows = conn.execute(f"SELECT * FROM {name} ORDER BY {order}").fetchall()
            snapshot[name] = [dict(row) for row in rows]
        logger.info(
            "Exported snapshot: %s",
            ", ".join(f"{len(rows)} {name}" for name, rows in snapshot.items()),
        )
        return snapshot

    def _validate(self, snapshot: Any) -> Dict[str, List[Mapping[str, Any]]]:
        if not isinstance(snapshot, Mapping):
            raise SnapshotError("Snapshot must be a mapping of collection name to rows")

        collections = {}
        for name in SNAPSHOT_COLLECTIONS:
            rows = snapshot.get(name)
            if rows is None:
                rows = []
            if not isinstance(rows, list):
                raise SnapshotError(f"Snapshot collection '{name}' must be a list")
            known = set(table_columns(self._store.conn, name))
            for index, row in enumerate(rows):
                if not isinstance(row, Mapping):
                    raise SnapshotError(f"Row {index} of '{name}' is not a record")
                if not known.intersection(row):
                    raise SnapshotError(f"Row {index} of '{name}' has no known columns")
            collections[name] = rows
        return collections

    def import_all(self, snapshot: Any) -> Dict[str, int]:
        """
        Insert every row of a snapshot, preserving ids and references.

        Returns:
            Number of rows inserted per collection

        Raises:
            SnapshotError: If the payload is malformed (nothing is written)
            PersistenceError: If the engine rejects a row (id collision,
                dangling reference)
        """
        collections = self._validate(snapshot)
        conn = self._store.conn
        counts = {}

        for name in SNAPSHOT_COLLECTIONS:
            rows = collections[name]
            if name == "projects":
                rows = _parents_first(rows)
            known = table_columns(conn, name)

            try:
                with conn:
                    for row in rows:
                        columns = [column for column in known if column in row]
                        conn.execute(
                            f"INSERT INTO {name} ({', '.join(columns)}) "
                            f"VALUES ({', '.join('?' for _ in columns)})",
                            [row[column] for column in columns],
                        )
            except sqlite3.Error as e:
                raise PersistenceError(f"Import of '{name}' failed: {e}") from e
            counts[name] = len(rows)

        logger.info("Imported snapshot: %s", counts)
        return counts
