"""
Test the command-line interface end to end against temporary databases.
"""

import json

import pytest
from typer.testing import CliRunner

from labbook import __version__
from labbook.config import get_settings
from labbook.core import Store
from labbook.core.schema import LATEST_VERSION
from labbook.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    """Keep log records out of captured command output."""
    monkeypatch.setenv("LABBOOK_LOG_LEVEL", "WARNING")
    get_settings.cache_clear()


@pytest.fixture
def db(tmp_path):
    return tmp_path / "cli.db"


def run(db, *args):
    return runner.invoke(app, ["--db", str(db), "--no-seed", *args])


def test_version():
    """Test the version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"labbook v{__version__}" in result.stdout


def test_init_is_repeatable(db):
    """Test init creates the store and can be run again."""
    for _ in range(2):
        result = run(db, "init")
        assert result.exit_code == 0, result.output
        assert f"Schema version {LATEST_VERSION}" in result.stdout
    assert db.exists()


def test_projects_json_on_seeded_store(db, monkeypatch):
    """Test a new database starts with the example project."""
    monkeypatch.setenv("LABBOOK_SEED", "1")
    get_settings.cache_clear()

    result = runner.invoke(app, ["--db", str(db), "projects", "--json"])

    assert result.exit_code == 0, result.output
    projects = json.loads(result.stdout)
    assert [p["name"] for p in projects] == ["Welcome Project"]
    assert projects[0]["total_tasks"] == 2


def test_projects_table(db):
    """Test the table listing and the empty message."""
    result = run(db, "projects")
    assert result.exit_code == 0
    assert "No projects found" in result.stdout

    with Store(db) as store:
        store.projects.create({"name": "Thesis"})
    result = run(db, "projects")
    assert "Thesis" in result.stdout
    assert "Total: 1 project(s)" in result.stdout


def test_tree_json(db):
    """Test the tree command spans sub-projects."""
    with Store(db) as store:
        root = store.projects.create({"name": "Root"})
        child = store.projects.create({"name": "Child", "parent_id": root})
        store.tasks.create({"project_id": child, "title": "Nested task"})

    result = run(db, "tree", str(root), "--json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["project"]["name"] == "Root"
    assert payload["stats"]["total_tasks"] == 1
    assert [t["project_name"] for t in payload["tasks"]] == ["Child"]


def test_tree_unknown_project(db):
    """Test a missing project exits with an error."""
    result = run(db, "tree", "42")
    assert result.exit_code == 1
    assert "Project 42 not found" in result.output


def test_deps_set_and_show(db):
    """Test replacing and showing a task's blockers."""
    with Store(db) as store:
        project = store.projects.create({"name": "P"})
        first = store.tasks.create({"project_id": project, "title": "First"})
        second = store.tasks.create({"project_id": project, "title": "Second"})

    result = run(db, "deps", str(second), "--set", str(first))
    assert result.exit_code == 0, result.output
    assert f"blocked by: {first}" in result.stdout

    result = run(db, "deps", str(first))
    assert "not blocked" in result.stdout
    assert f"blocks: {second}" in result.stdout

    result = run(db, "deps", str(second), "--set", "x")
    assert result.exit_code == 1


def test_export_import_round_trip(db, tmp_path):
    """Test a store survives export to a file and import into a new one."""
    with Store(db) as store:
        project = store.projects.create({"name": "Root"})
        store.projects.create({"name": "Child", "parent_id": project})
        task = store.tasks.create({"project_id": project, "title": "T"})
        store.links.create({"project_id": project, "task_id": task, "label": "L", "target": "/x", "kind": "file"})
        store.notes.upsert(project, "remember")
        original = store.snapshot.export_all()

    snapshot_file = tmp_path / "backup.json"
    result = run(db, "export", str(snapshot_file))
    assert result.exit_code == 0, result.output
    assert json.loads(snapshot_file.read_text(encoding="utf-8")) == original

    restored_db = tmp_path / "restored.db"
    result = run(restored_db, "import", str(snapshot_file))
    assert result.exit_code == 0, result.output

    with Store(restored_db) as restored:
        assert restored.snapshot.export_all() == original


def test_import_refuses_non_empty_store(db, tmp_path):
    """Test import won't collide with existing data unless forced."""
    with Store(db) as store:
        store.projects.create({"name": "Existing"})
        snapshot = store.snapshot.export_all()
    snapshot_file = tmp_path / "backup.json"
    snapshot_file.write_text(json.dumps(snapshot), encoding="utf-8")

    result = run(db, "import", str(snapshot_file))
    assert result.exit_code == 1
    assert "not empty" in result.output

    # Forcing it hits the id collision instead
    result = run(db, "import", str(snapshot_file), "--force")
    assert result.exit_code == 1

    with Store(db) as store:
        assert store.projects.count() == 1


def test_import_bad_file(db, tmp_path):
    """Test unreadable and malformed snapshot files."""
    result = run(db, "import", str(tmp_path / "missing.json"))
    assert result.exit_code == 1

    bad = tmp_path / "bad.json"
    bad.write_text('{"projects": "nope"}', encoding="utf-8")
    result = run(db, "import", str(bad))
    assert result.exit_code == 1
    assert "must be a list" in result.output
