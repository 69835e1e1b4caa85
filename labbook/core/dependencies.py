"""
FILE: labbook/core/dependencies.py
PURPOSE: Directed "task is blocked by task" edges
EXPORTS:
  - DependencyGraph(store)
  - set_dependencies(task_id, blocking_ids) -> List[int]
  - get_dependencies(task_id) -> List[int]
  - dependents(task_id) -> List[int]
  - edges() -> List[Tuple[int, int]]
  - topological_order() -> DependencyOrder
DEPENDENCIES:
  - sqlite3 (stdlib)
NOTES:
  - Pure edge storage: writes never check for cycles
  - topological_order() is a read-time pass that reports the tasks it
    could not order (on a cycle, or blocked behind one) instead of failing
"""

import logging
import sqlite3
from collections import defaultdict, deque
from typing import Iterable, List, NamedTuple, Set, Tuple

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class DependencyOrder(NamedTuple):
    order: List[int]
    cyclic: Set[int]


class DependencyGraph:
    def __init__(self, store):
        self._store = store

    def set_dependencies(self, task_id: int, blocking_ids: Iterable[int]) -> List[int]:
        """
        Replace every out-edge of `task_id`.

        Self-edges are dropped and duplicates ignored.

        Returns:
            The stored blocking task ids

        Raises:
            PersistenceError: If a task id doesn't exist
        """
        blockers = [b for b in blocking_ids if b != task_id]
        conn = self._store.conn
        try:
            with conn:
                conn.execute("DELETE FROM task_dependencies WHERE task_id = ?", (task_id,))
                conn.executemany(
                    "INSERT OR IGNORE INTO task_dependencies (task_id, depends_on_task_id) VALUES (?, ?)",
                    [(task_id, blocker) for blocker in blockers],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not set dependencies of task {task_id}: {e}") from e
        return self.get_dependencies(task_id)

    def get_dependencies(self, task_id: int) -> List[int]:
        rows = self._store.conn.execute(
            "SELECT depends_on_task_id FROM task_dependencies WHERE task_id = ? ORDER BY depends_on_task_id",
            (task_id,),
        ).fetchall()
        return [int(row[0]) for row in rows]

    def dependents(self, task_id: int) -> List[int]:
        """Tasks blocked by `task_id`."""
        rows = self._store.conn.execute(
            "SELECT task_id FROM task_dependencies WHERE depends_on_task_id = ? ORDER BY task_id",
            (task_id,),
        ).fetchall()
        return [int(row[0]) for row in rows]

    def edges(self) -> List[Tuple[int, int]]:
        rows = self._store.conn.execute(
            "SELECT task_id, depends_on_task_id FROM task_dependencies ORDER BY task_id, depends_on_task_id"
        ).fetchall()
        return [(int(row[0]), int(row[1])) for row in rows]

    def topological_order(self) -> DependencyOrder:
        """Order tasks so blockers come first (Kahn's algorithm over stored edges)."""
        blocked_by = defaultdict(set)
        blocks = defaultdict(set)
        nodes = set()
        for task_id, blocker in self.edges():
            blocked_by[task_id].add(blocker)
            blocks[blocker].add(task_id)
            nodes.update((task_id, blocker))

        pending = {node: len(blocked_by[node]) for node in nodes}
        ready = deque(sorted(node for node, count in pending.items() if count == 0))
        order = []
        while ready:
            node = ready.popleft()
            order.append(node)
            for dependent in sorted(blocks[node]):
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    ready.append(dependent)

        cyclic = nodes - set(order)
        if cyclic:
            logger.info("Dependency cycle involving task(s) %s", sorted(cyclic))
        return DependencyOrder(order=order, cyclic=cyclic)
