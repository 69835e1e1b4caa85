"""
FILE: labbook/utils.py
PURPOSE: Shared helpers for timestamps and id parsing
EXPORTS:
  - timestamp() -> str
  - today() -> date
  - parse_ids(value) -> List[int]
DEPENDENCIES:
  - datetime (stdlib)
NOTES:
  - timestamp() matches SQLite's datetime('now') format (UTC, no "T"), so
    Python-stamped and SQL-defaulted columns sort together
"""

from datetime import date, datetime, timezone
from typing import List

from .core.exceptions import InvalidInputError


def timestamp() -> str:
    """Current UTC time as 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def today() -> date:
    return date.today()


def parse_ids(value: str) -> List[int]:
    """
    Parse a comma-separated list of ids ("3,5,7").

    Raises:
        InvalidInputError: If any part is not an integer
    """
    ids = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise InvalidInputError(f"Invalid id '{part}'. Ids must be numbers.")
    return ids
