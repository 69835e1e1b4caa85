"""
FILE: labbook/core/constants.py
PURPOSE: Constants used throughout the data layer
EXPORTS:
  - TASK_STATUSES, MILESTONE_STATUSES, PAPER_STATUSES, EXPERIMENT_STATUSES
  - LINK_KINDS, TASK_TYPES
  - TINT_PALETTE_SIZE, TINT_MAX_PROBES
  - DEFAULT_PRIORITY, DEFAULT_PROJECT_COLOR
  - SNAPSHOT_COLLECTIONS
DEPENDENCIES:
  - None (stdlib only)
NOTES:
  - Single source of truth for the CHECK constraint vocabularies
"""

# Task status constants
STATUS_OPEN = "open"
STATUS_DONE = "done"
TASK_STATUSES = (STATUS_OPEN, STATUS_DONE)

TASK_TYPES = ("experiment", "writing", "reading", "general")

MILESTONE_STATUSES = ("pending", "done", "blocked")
PAPER_STATUSES = ("to_read", "reading", "read")
EXPERIMENT_STATUSES = ("planned", "running", "done", "blocked")

LINK_KINDS = ("file", "folder", "url")

# Default values
DEFAULT_PRIORITY = 3
DEFAULT_PROJECT_COLOR = "#3b82f6"

# Sub-project tints index a five-step ramp toward white
TINT_PALETTE_SIZE = 5
TINT_MAX_PROBES = 10

UPCOMING_WINDOW_DAYS = 7

# Snapshot collections, in insertion order for import
SNAPSHOT_COLLECTIONS = (
    "projects",
    "tasks",
    "links",
    "milestones",
    "notes",
    "papers",
    "experiments",
    "task_dependencies",
)
