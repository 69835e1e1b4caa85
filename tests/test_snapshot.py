"""
Test snapshot export and import.
"""

import json

import pytest

from labbook.core import Store
from labbook.core.constants import SNAPSHOT_COLLECTIONS
from labbook.core.exceptions import PersistenceError, SnapshotError


@pytest.fixture
def populated(store):
    """A store with a row in every collection."""
    root = store.projects.create({"name": "Root", "tags": "a,b"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    store.projects.update(root, {"position": 9})
    t1 = store.tasks.create({"project_id": root, "title": "T1", "due_date": "2024-01-01"})
    t2 = store.tasks.create({"project_id": child, "title": "T2", "status": "done"})
    store.dependencies.set_dependencies(t2, [t1])
    store.links.create({"project_id": root, "task_id": t1, "label": "L", "target": "/x", "kind": "file"})
    store.milestones.create({"project_id": root, "title": "M"})
    store.notes.upsert(child, "notes")
    store.papers.create({"project_id": root, "title": "P", "year": 2020})
    store.experiments.create({"project_id": child, "name": "E", "variables_json": {"n": 3}})
    return store


def test_export_has_every_collection(populated):
    """Test the snapshot lists every collection, JSON-serializable."""
    snapshot = populated.snapshot.export_all()

    assert list(snapshot) == list(SNAPSHOT_COLLECTIONS)
    assert all(len(rows) >= 1 for rows in snapshot.values())
    json.dumps(snapshot)


def test_round_trip_into_empty_store(populated, tmp_path):
    """Test export then import reproduces identical rows."""
    snapshot = populated.snapshot.export_all()

    with Store(tmp_path / "copy.db", seed_examples=False) as copy:
        counts = copy.snapshot.import_all(snapshot)
        assert counts == {name: len(rows) for name, rows in snapshot.items()}
        assert copy.snapshot.export_all() == snapshot


def test_import_children_before_parents(store):
    """Test a child listed before its parent still imports."""
    snapshot = {
        "projects": [
            {"id": 2, "name": "Child", "parent_id": 1, "archived": 0, "created_at": "2024-01-01 00:00:00"},
            {"id": 1, "name": "Parent", "archived": 0, "created_at": "2024-01-01 00:00:00"},
        ],
    }
    counts = store.snapshot.import_all(snapshot)

    assert counts["projects"] == 2
    assert counts["tasks"] == 0
    assert store.projects.get(2).parent_id == 1


def test_import_ignores_unknown_columns(store):
    """Test fields the table doesn't have are dropped."""
    store.snapshot.import_all({"projects": [{"id": 5, "name": "P", "legacy_flag": True}]})
    assert store.projects.get(5).name == "P"


def test_import_collision_is_persistence_error(populated):
    """Test importing into the same store fails on ids."""
    snapshot = populated.snapshot.export_all()
    with pytest.raises(PersistenceError):
        populated.snapshot.import_all(snapshot)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        "projects",
        {"projects": {"id": 1}},
        {"projects": ["not a row"]},
    ],
)
def test_malformed_snapshot_rejected(store, payload):
    """Test malformed payloads raise SnapshotError and write nothing."""
    with pytest.raises(SnapshotError):
        store.snapshot.import_all(payload)
    assert store.projects.count() == 0


def test_row_without_known_columns_rejected_before_any_write(store):
    """Test a bad row in a later collection stops the import before projects are written."""
    snapshot = {
        "projects": [{"id": 1, "name": "Kept out"}],
        "tasks": [{"bogus": 1}],
    }
    with pytest.raises(SnapshotError):
        store.snapshot.import_all(snapshot)
    assert store.projects.count() == 0
