"""
FILE: labbook/core/store.py
PURPOSE: SQLite connection handle and component wiring
EXPORTS:
  - Store(path, seed_examples)
  - Store.open(path, seed_examples) -> Store
DEPENDENCIES:
  - sqlite3, threading (stdlib)
  - labbook.config (default database location)
  - labbook.core.schema (SchemaManager)
NOTES:
  - One connection per Store, opened lazily on first use
  - Initialization (connect + migrate) runs at most once, even when
    several threads race on the first query
  - Store.open() initializes eagerly, so callers get a ready store
  - Foreign keys are enabled per connection (required for the cascades)
"""

import contextlib
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

from ..config import get_settings
from .dependencies import DependencyGraph
from .exceptions import PersistenceError
from .repository import (
    ExperimentRepository,
    LinkRepository,
    MilestoneRepository,
    NoteRepository,
    PaperRepository,
    ProjectRepository,
    TaskRepository,
)
from .schema import SchemaManager
from .snapshot import SnapshotExchanger
from .tints import TintAllocator
from .tree import TreeAggregator

logger = logging.getLogger(__name__)


class Store:
    """
    The labbook data store.

    Components are exposed as attributes: projects, tasks, links,
    milestones, notes, papers, experiments (repositories), tints, tree,
    dependencies and snapshot.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        seed_examples: Optional[bool] = None,
    ):
        settings = get_settings()
        self.path = Path(path) if path is not None else settings.db_path
        self.seed_examples = settings.seed_examples if seed_examples is None else seed_examples
        self.schema_version: Optional[int] = None

        self._conn: Optional[sqlite3.Connection] = None
        self._init_lock = threading.Lock()

        self.projects = ProjectRepository(self)
        self.tasks = TaskRepository(self)
        self.links = LinkRepository(self)
        self.milestones = MilestoneRepository(self)
        self.notes = NoteRepository(self)
        self.papers = PaperRepository(self)
        self.experiments = ExperimentRepository(self)

        self.tints = TintAllocator(self)
        self.tree = TreeAggregator(self)
        self.dependencies = DependencyGraph(self)
        self.snapshot = SnapshotExchanger(self)

    @classmethod
    def open(
        cls,
        path: Optional[Union[str, Path]] = None,
        seed_examples: Optional[bool] = None,
    ) -> "Store":
        """Create a store and bring its schema up to date before returning it."""
        store = cls(path, seed_examples=seed_examples)
        store.initialize()
        return store

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.initialize()
        return self._conn

    @property
    def initialized(self) -> bool:
        return self._conn is not None

    def initialize(self) -> None:
        """
        Open the database and run the schema manager, once.

        Raises:
            PersistenceError: If the database file cannot be opened or the
                base tables cannot be created
        """
        if self._conn is not None:
            return
        with self._init_lock:
            if self._conn is not None:
                return
            conn = self._connect()
            try:
                self.schema_version = SchemaManager(conn, self.seed_examples).migrate()
            except sqlite3.Error as e:
                conn.close()
                raise PersistenceError(f"Cannot initialize store at {self.path}: {e}") from e
            self._conn = conn
            logger.info("Store ready db=%s schema=%s", self.path, self.schema_version)

    def _connect(self) -> sqlite3.Connection:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=30.0, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open store at {self.path}: {e}") from e

        conn.row_factory = sqlite3.Row
        # Enable foreign key constraints (required for ON DELETE CASCADE)
        conn.execute("PRAGMA foreign_keys = ON")
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def close(self) -> None:
        with self._init_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "Store":
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
