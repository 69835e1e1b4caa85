"""
Test statistics and task lists over project trees.
"""

from datetime import date

from labbook.core.models import ProjectStats

TODAY = date(2024, 6, 10)


def _task(store, project_id, title, due=None, done=False):
    fields = {"project_id": project_id, "title": title, "due_date": due}
    if done:
        fields["status"] = "done"
    return store.tasks.create(fields)


def test_closure_and_ancestors(store):
    """Test the tree walk in both directions."""
    root = store.projects.create({"name": "Root"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    grandchild = store.projects.create({"name": "Grandchild", "parent_id": child})
    store.projects.create({"name": "Unrelated"})

    assert store.tree.closure(root) == {root, child, grandchild}
    assert store.tree.closure(grandchild) == {grandchild}
    assert store.tree.ancestors(grandchild) == [child, root]
    assert store.tree.ancestors(root) == []


def test_stats_counts(store, project):
    """Test overdue and upcoming are judged against the given date; overdue tasks also count as upcoming."""
    _task(store, project, "overdue", due="2024-06-09")
    _task(store, project, "due today", due="2024-06-10")
    _task(store, project, "edge of window", due="2024-06-17")
    _task(store, project, "too far", due="2024-06-18")
    _task(store, project, "undated")
    _task(store, project, "done and late", due="2024-01-01", done=True)

    stats = store.tree.stats(project, today=TODAY)

    assert stats == ProjectStats(
        total_tasks=6, completed_tasks=1, overdue_tasks=1, upcoming_tasks=3
    )


def test_stats_empty_project(store, project):
    """Test a project without tasks has all-zero stats."""
    assert store.tree.stats(project, today=TODAY) == ProjectStats()


def test_stats_sum_over_subprojects(store):
    """Test a parent's stats equal its own plus every descendant's."""
    root = store.projects.create({"name": "Root"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    grandchild = store.projects.create({"name": "Grandchild", "parent_id": child})

    _task(store, root, "r1", due="2024-06-01")
    _task(store, child, "c1", done=True)
    _task(store, child, "c2", due="2024-06-12")
    _task(store, grandchild, "g1", due="2024-05-01")

    def own(project_id):
        row = store.conn.execute(
            """
            SELECT COUNT(*) AS total_tasks,
                   COALESCE(SUM(status = 'done'), 0) AS completed_tasks,
                   COALESCE(SUM(status = 'open' AND due_date < ?), 0) AS overdue_tasks,
                   COALESCE(SUM(status = 'open' AND due_date <= ?), 0) AS upcoming_tasks
            FROM tasks WHERE project_id = ?
            """,
            ("2024-06-10", "2024-06-17", project_id),
        ).fetchone()
        return ProjectStats.from_row(row)

    expected = own(root) + own(child) + own(grandchild)
    assert store.tree.stats(root, today=TODAY) == expected
    assert expected == ProjectStats(total_tasks=4, completed_tasks=1, overdue_tasks=2, upcoming_tasks=3)
    assert store.tree.stats(child, today=TODAY).total_tasks == 3


def test_tree_tasks_carry_project_name(store):
    """Test tree task lists span sub-projects and name each task's project."""
    root = store.projects.create({"name": "Root", "color": "#112233"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    _task(store, root, "first")
    _task(store, child, "second")

    tasks = store.tree.tasks(root)

    assert [(t.title, t.project_name) for t in tasks] == [("second", "Child"), ("first", "Root")]
    # Sub-project tasks render with the parent's color
    assert all(t.project_color == "#112233" for t in tasks)


def test_tree_tasks_root_project_untinted(store):
    """Test root project tasks carry no tint while sub-project tasks carry the sub-project's."""
    root = store.projects.create({"name": "Root", "color": "#112233"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    _task(store, root, "first")
    _task(store, child, "second")

    tints = {t.title: t.project_tint for t in store.tree.tasks(root)}

    assert tints["first"] is None
    assert tints["second"] == store.projects.get(child).tint


def test_projects_with_stats(store):
    """Test the project listing pairs each project with its tree stats."""
    root = store.projects.create({"name": "Root"})
    child = store.projects.create({"name": "Child", "parent_id": root})
    _task(store, child, "c1")

    rows = store.tree.projects_with_stats(today=TODAY)

    totals = {row.project.name: row.stats.total_tasks for row in rows}
    assert totals == {"Root": 1, "Child": 1}
    data = rows[0].to_dict()
    assert data["name"] == "Root"
    assert data["total_tasks"] == 1
