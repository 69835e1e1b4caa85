"""Shared pytest configuration and fixtures for tests."""

import sys
import io
from pathlib import Path

import pytest

# Fix Windows console encoding
if sys.platform == "win32":
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8')

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from labbook.config import get_settings
from labbook.core import Store


@pytest.fixture(autouse=True)
def labbook_home(monkeypatch, tmp_path):
    """Keep settings, the default database and logs inside tmp_path."""
    home = tmp_path / "home"
    monkeypatch.setenv("LABBOOK_HOME", str(home))
    monkeypatch.delenv("LABBOOK_DB", raising=False)
    monkeypatch.setenv("LABBOOK_SEED", "0")
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path):
    """An initialized, empty store."""
    s = Store.open(tmp_path / "test.db", seed_examples=False)
    yield s
    s.close()


@pytest.fixture
def project(store):
    """A root project in the store."""
    return store.projects.create({"name": "Thesis"})
