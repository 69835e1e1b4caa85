"""
FILE: labbook/logging_setup.py
PURPOSE: Logging configuration for the CLI process
EXPORTS:
  - setup_logging(level, log_dir) -> Optional[Path]
DEPENDENCIES:
  - logging (stdlib)
  - rich.logging (console handler)
NOTES:
  - Library modules only call logging.getLogger(__name__); this is the one
    place handlers are installed
  - Call once, early, before the store is opened
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Configure root logging.

    Args:
        level: Level name for both handlers (DEBUG/INFO/WARNING/ERROR)
        log_dir: Directory for the rotating log file (None = console only)

    Returns:
        Path of the log file, or None if file logging is disabled
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Remove any pre-existing handlers to avoid duplicates.
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(numeric_level)
    root.addHandler(console_handler)

    logfile = None
    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            logfile = log_dir / "labbook.log"
            # Rotate at 2MB, keep 3 backups
            file_handler = RotatingFileHandler(
                logfile, maxBytes=2_000_000, backupCount=3, encoding="utf-8"
            )
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))
            file_handler.setLevel(numeric_level)
            root.addHandler(file_handler)
        except OSError as e:
            logfile = None
            print(f"labbook: file logging disabled ({e})", file=sys.stderr)

    logging.captureWarnings(True)
    logging.getLogger(__name__).debug("Logging initialized at %s; file: %s", level, logfile)
    return logfile
