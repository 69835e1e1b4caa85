"""
Test task dependency edges and ordering.
"""

import pytest

from labbook.core.exceptions import PersistenceError


@pytest.fixture
def tasks(store, project):
    """Five tasks in one project."""
    return [store.tasks.create({"project_id": project, "title": f"T{i}"}) for i in range(5)]


def test_set_and_get(store, tasks):
    """Test storing blockers, dropping self-edges and duplicates."""
    a, b, c = tasks[:3]

    stored = store.dependencies.set_dependencies(c, [a, b, b, c])

    assert stored == sorted([a, b])
    assert store.dependencies.get_dependencies(c) == sorted([a, b])
    assert store.dependencies.dependents(a) == [c]


def test_set_replaces(store, tasks):
    """Test a second call replaces every out-edge."""
    a, b, c = tasks[:3]
    store.dependencies.set_dependencies(c, [a])
    store.dependencies.set_dependencies(c, [b])
    assert store.dependencies.get_dependencies(c) == [b]

    store.dependencies.set_dependencies(c, [])
    assert store.dependencies.get_dependencies(c) == []


def test_unknown_task_rejected(store, tasks):
    """Test an edge to a missing task fails and leaves the old edges."""
    a, b = tasks[:2]
    store.dependencies.set_dependencies(b, [a])

    with pytest.raises(PersistenceError):
        store.dependencies.set_dependencies(b, [9999])
    assert store.dependencies.get_dependencies(b) == [a]


def test_topological_order(store, tasks):
    """Test blockers come before the tasks they block."""
    t0, t1, t2, t3, _ = tasks
    store.dependencies.set_dependencies(t3, [t1, t2])
    store.dependencies.set_dependencies(t1, [t0])
    store.dependencies.set_dependencies(t2, [t0])

    result = store.dependencies.topological_order()

    assert result.cyclic == set()
    order = result.order
    assert order.index(t0) < order.index(t1) < order.index(t3)
    assert order.index(t2) < order.index(t3)


def test_cycles_are_reported_not_raised(store, tasks):
    """Test cyclic tasks (and those behind them) are reported."""
    t0, t1, t2, t3, t4 = tasks
    store.dependencies.set_dependencies(t1, [t2])
    store.dependencies.set_dependencies(t2, [t1])
    store.dependencies.set_dependencies(t3, [t2])
    store.dependencies.set_dependencies(t4, [t0])

    result = store.dependencies.topological_order()

    assert result.cyclic == {t1, t2, t3}
    assert result.order == [t0, t4]
