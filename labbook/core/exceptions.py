"""
FILE: labbook/core/exceptions.py
PURPOSE: Custom exception classes for error handling
EXPORTS:
  - LabbookError (base exception)
  - InvalidInputError
  - HierarchyCycleError
  - PersistenceError
  - ProjectNotFoundError
  - TaskNotFoundError
  - SnapshotError
DEPENDENCIES:
  - None (stdlib only)
NOTES:
  - All exceptions inherit from LabbookError for easy catching
  - Validation errors are raised before any write reaches SQLite
  - PersistenceError always chains the original sqlite3.Error
"""


class LabbookError(Exception):
    """Base exception for all labbook errors."""
    pass


class InvalidInputError(LabbookError):
    """Input validation failed."""

    def __init__(self, message: str):
        super().__init__(message)


class HierarchyCycleError(InvalidInputError):
    """A project would become its own ancestor."""

    def __init__(self, project_id: int, parent_id: int):
        self.project_id = project_id
        self.parent_id = parent_id
        super().__init__(
            f"Project {project_id} cannot be moved under {parent_id}: "
            "it would become its own ancestor"
        )


class PersistenceError(LabbookError):
    """The storage engine rejected a write (constraint, bad reference)."""

    def __init__(self, message: str):
        super().__init__(message)


class ProjectNotFoundError(LabbookError):
    """Project with given ID doesn't exist."""

    def __init__(self, project_id: int):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class TaskNotFoundError(LabbookError):
    """Task with given ID doesn't exist."""

    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class SnapshotError(LabbookError):
    """Snapshot payload is malformed."""

    def __init__(self, message: str):
        super().__init__(message)
