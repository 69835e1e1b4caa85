"""
FILE: labbook/core/tints.py
PURPOSE: Assign distinct shade indexes to sibling sub-projects
EXPORTS:
  - TintAllocator(store)
  - TintAllocator.allocate(parent_id) -> int
  - TintAllocator.retint_all(parent_id, color) -> List[int]
DEPENDENCIES:
  - sqlite3 (stdlib)
NOTES:
  - A tint is an index (0..4) into a lighten-toward-white ramp over the
    parent's color; the ramp itself is rendered by labbook.formatting
  - Five is a soft cap: the sixth sibling reuses a tint
"""

import logging
import sqlite3
from typing import List

from .constants import TINT_MAX_PROBES, TINT_PALETTE_SIZE
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class TintAllocator:
    def __init__(self, store):
        self._store = store

    def used_tints(self, parent_id: int) -> set:
        rows = self._store.conn.execute(
            "SELECT tint FROM projects WHERE parent_id = ?", (parent_id,)
        ).fetchall()
        return {int(row["tint"]) for row in rows if row["tint"] is not None}

    def allocate(self, parent_id: int) -> int:
        """
        Pick a tint for a new sub-project of `parent_id`.

        Returns the lowest tint no sibling uses. Once all are taken, probes
        round-robin from 0 for a bounded number of attempts and accepts a
        duplicate.
        """
        used = self.used_tints(parent_id)

        tone = 0
        while tone < TINT_PALETTE_SIZE and tone in used:
            tone += 1

        if tone >= TINT_PALETTE_SIZE:
            tone, tries = 0, 0
            while tone in used and tries < TINT_MAX_PROBES:
                tone = (tone + 1) % TINT_PALETTE_SIZE
                tries += 1

        return tone

    def retint_all(self, parent_id: int, color: str) -> List[int]:
        """
        Set the parent's color and re-spread tints over its sub-projects.

        Sub-projects get 0, 1, 2, 3, 4, 0, ... in (created_at, id) order,
        whatever tints they had before.

        Returns:
            Sub-project ids in the order tints were assigned
        """
        conn = self._store.conn
        try:
            with conn:
                conn.execute("UPDATE projects SET color = ? WHERE id = ?", (color, parent_id))
                children = [
                    row["id"]
                    for row in conn.execute(
                        "SELECT id FROM projects WHERE parent_id = ? ORDER BY created_at ASC, id ASC",
                        (parent_id,),
                    ).fetchall()
                ]
                conn.executemany(
                    "UPDATE projects SET tint = ? WHERE id = ?",
                    [(index % TINT_PALETTE_SIZE, child) for index, child in enumerate(children)],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not retint project {parent_id}: {e}") from e

        logger.debug("Retinted %d sub-project(s) of %s", len(children), parent_id)
        return children
