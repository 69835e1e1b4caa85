"""Data layer: schema, repositories and aggregate views over one SQLite store."""

from .store import Store

__all__ = ["Store"]
