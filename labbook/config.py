"""
FILE: labbook/config.py
PURPOSE: Runtime settings resolved from the environment
EXPORTS:
  - Settings (frozen dataclass)
  - get_settings() -> Settings
DEPENDENCIES:
  - os, pathlib, functools (stdlib)
NOTES:
  - Database stored at ~/.labbook/labbook.db unless overridden
  - LABBOOK_HOME moves the whole data directory (db + logs)
  - LABBOOK_DB points at a specific database file
  - LABBOOK_SEED=0 disables the example project on a fresh store
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    home: Path
    db_path: Path
    log_dir: Path
    log_level: str = "INFO"
    seed_examples: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    home = Path(os.environ.get("LABBOOK_HOME", Path.home() / ".labbook")).expanduser()
    db_path = Path(os.environ.get("LABBOOK_DB", home / "labbook.db")).expanduser()
    seed = os.environ.get("LABBOOK_SEED", "1").strip().lower() not in _FALSE_VALUES

    return Settings(
        home=home,
        db_path=db_path,
        log_dir=home / "logs",
        log_level=os.environ.get("LABBOOK_LOG_LEVEL", "INFO").upper(),
        seed_examples=seed,
    )
