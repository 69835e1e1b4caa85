"""
FILE: labbook/cli/commands/__init__.py
PURPOSE: CLI command modules
"""

# Export all command handlers for easy importing
from .system import (
    version,
    init,
)
from .projects import (
    project_ls,
    project_tree,
)
from .tasks import (
    deps,
)
from .snapshot import (
    export,
    import_,
)

__all__ = [
    "version",
    "init",
    "project_ls",
    "project_tree",
    "deps",
    "export",
    "import_",
]
