"""Tests for the history builder against an in-memory repository."""

import time
from datetime import datetime, timedelta

import pytest

from codetrail.exceptions import RepositoryError
from codetrail.extraction import RepositoryAccess
from codetrail.history import CancellationToken, HistoryBuilder, RevisionModelCache
from codetrail.models import ChangeKind, Commit, HistoryConfig, ParentVersion, TerminationReason


class FakeRepository(RepositoryAccess):
    """Commit graph held in dictionaries; every parent holding the file is a version."""

    def __init__(self):
        self.commits = {}
        self.order = []
        self.broken_blobs = set()
        self.broken_commits = set()

    def add(self, commit_id, files, parents=()):
        self.commits[commit_id] = (list(parents), dict(files))
        self.order.append(commit_id)
        return commit_id

    def resolve_commit(self, commit_id):
        if commit_id not in self.commits:
            raise RepositoryError(f"Commit not found: {commit_id}", commit_id)
        timestamp = datetime(2024, 1, 1) + timedelta(hours=self.order.index(commit_id))
        return Commit(
            id=commit_id,
            short_id=commit_id[:7],
            parent_ids=self.commits[commit_id][0],
            author_name="Test User",
            authored_at=timestamp,
            committed_at=timestamp,
        )

    def parents_touching(self, commit_id, path):
        if commit_id in self.broken_commits:
            raise RepositoryError("corrupt object", commit_id)
        parents, _ = self.commits[commit_id]
        return [
            ParentVersion(commit=self.resolve_commit(p), path=path, via_parent=p)
            for p in parents
            if path in self.commits[p][1]
        ]

    def read_blob(self, commit_id, path):
        if (commit_id, path) in self.broken_blobs:
            raise RepositoryError("cannot read blob", commit_id, path)
        try:
            return self.commits[commit_id][1][path].encode("utf-8")
        except KeyError:
            raise RepositoryError(f"File {path} not found", commit_id, path)

    def changed_paths(self, commit_id, parent_id):
        files = self.commits[commit_id][1]
        parent_files = self.commits[parent_id][1]
        return sorted(p for p, content in parent_files.items() if files.get(p) != content)


def version(n):
    return f"def compute(values):\n    total = {n}\n    for v in values:\n        total += v\n    return total\n"


@pytest.fixture
def repo():
    return FakeRepository()


def build(repo, commit_id, path="calc.py", qualified_name="compute", history_config=None, cancellation=None):
    builder = HistoryBuilder(repo, history_config=history_config)
    commit = repo.resolve_commit(commit_id)
    model = builder.cache.model_of(commit_id, path)
    element = model.find(lambda e: e.qualified_name == qualified_name)[0]
    return builder.build(commit, path, model, element, cancellation)


def linear(repo, length):
    parents = ()
    for n in range(length):
        parents = (repo.add(f"c{n}", {"calc.py": version(n)}, parents),)
    return parents[0]


def test_linear_history(repo):
    """Test each commit that changed the body yields one node and one edge."""
    head = linear(repo, 4)

    history = build(repo, head)

    assert [n.commit_id for n in history.nodes] == ["c3", "c2", "c1", "c0"]
    assert [(e.source, e.target) for e in history.edges] == [(0, 1), (1, 2), (2, 3)]
    assert all(e.kind == ChangeKind.BODY_CHANGE for e in history.edges)
    assert history.termination_reasons(3) == [TerminationReason.INTRODUCED]
    assert history.introduced_at()[0].commit_id == "c0"
    assert not history.budget_exceeded


def test_report_counters(repo):
    head = linear(repo, 3)

    history = build(repo, head)
    report = history.report

    assert report.commits_analysed == 3
    assert report.walker_calls == 3
    assert report.locator_tiers == {"tier_1": 2}
    assert report.cache_misses == 2
    assert report.models_built == 2
    assert [p.commit_id for p in report.processing] == ["c2", "c1", "c0"]


def test_unchanged_version_is_kept_but_not_a_change(repo):
    repo.add("c0", {"calc.py": version(0)})
    repo.add("c1", {"calc.py": version(0) + "\n\nOTHER = 1\n"}, ["c0"])

    history = build(repo, "c1")

    assert [e.kind for e in history.edges] == [ChangeKind.UNCHANGED]
    assert history.changes() == []


def test_max_commits_budget(repo):
    """Test the walk stops and flags the history when the commit budget is spent."""
    head = linear(repo, 5)

    history = build(repo, head, history_config=HistoryConfig(max_commits=2))

    assert history.budget_exceeded
    assert len(history.nodes) == 3
    assert history.termination_reasons(2) == [TerminationReason.BUDGET_EXCEEDED]


def test_cancellation(repo):
    head = linear(repo, 3)
    token = CancellationToken()
    token.cancel()

    history = build(repo, head, cancellation=token)

    assert history.budget_exceeded
    assert len(history.nodes) == 1
    assert history.termination_reasons(0) == [TerminationReason.BUDGET_EXCEEDED]


def test_walker_error_terminates_branch(repo):
    head = linear(repo, 3)
    repo.broken_commits.add("c1")

    history = build(repo, head)

    assert [n.commit_id for n in history.nodes] == ["c2", "c1"]
    termination = history.terminations[0]
    assert termination.reason == TerminationReason.REPOSITORY_ERROR
    assert termination.node == 1
    assert "corrupt" in termination.detail


def test_unreadable_parent_terminates_branch(repo):
    head = linear(repo, 2)
    repo.broken_blobs.add(("c0", "calc.py"))

    history = build(repo, head)

    assert len(history.nodes) == 1
    assert history.terminations[0].reason == TerminationReason.REPOSITORY_ERROR
    assert history.terminations[0].commit_id == "c0"


def test_diamond_joins_into_one_node(repo):
    """Test a version reached from both sides of a merge is a single node."""
    repo.add("base", {"calc.py": version(0)})
    repo.add("left", {"calc.py": version(1)}, ["base"])
    repo.add("right", {"calc.py": version(2)}, ["base"])
    repo.add("merge", {"calc.py": version(3)}, ["left", "right"])

    history = build(repo, "merge")

    assert [n.commit_id for n in history.nodes] == ["merge", "left", "right", "base"]
    assert sorted((e.source, e.target) for e in history.edges) == [(0, 1), (0, 2), (1, 3), (2, 3)]
    assert [t.node for t in history.terminations] == [3]


def test_merge_with_one_side_missing_element(repo):
    """Test a parent without the element does not extend nor end the history."""
    repo.add("base", {"calc.py": version(0)})
    repo.add("left", {"calc.py": "VALUE = 1\n"}, [])
    repo.add("merge", {"calc.py": version(1)}, ["left", "base"])

    history = build(repo, "merge")

    assert [n.commit_id for n in history.nodes] == ["merge", "base"]
    assert history.termination_reasons(0) == []
    assert history.termination_reasons(1) == [TerminationReason.INTRODUCED]


def test_follow_move_from_other_file(repo):
    """Test an element that moved between existing files is followed."""
    repo.add("c0", {"calc.py": "X = 1\n", "legacy.py": version(0)})
    repo.add("c1", {"calc.py": "X = 1\n\n\n" + version(0), "legacy.py": "Y = 2\n"}, ["c0"])

    history = build(repo, "c1")

    assert [(n.commit_id, n.file_path) for n in history.nodes] == [("c1", "calc.py"), ("c0", "legacy.py")]
    assert history.edges[0].kind == ChangeKind.CONTAINER_CHANGE


def test_follow_move_into_new_file(repo):
    repo.add("c0", {"legacy.py": version(0)})
    repo.add("c1", {"calc.py": version(0), "legacy.py": "Y = 2\n"}, ["c0"])

    history = build(repo, "c1")

    assert history.nodes[1].file_path == "legacy.py"
    assert history.edges[0].kind == ChangeKind.CONTAINER_CHANGE


def test_follow_moves_disabled(repo):
    repo.add("c0", {"legacy.py": version(0)})
    repo.add("c1", {"calc.py": version(0), "legacy.py": "Y = 2\n"}, ["c0"])

    history = build(repo, "c1", history_config=HistoryConfig(follow_moves=False))

    assert len(history.nodes) == 1
    assert history.termination_reasons(0) == [TerminationReason.INTRODUCED]


def test_history_json_export(repo):
    head = linear(repo, 2)

    data = build(repo, head).model_dump(mode="json")

    assert data["element_kind"] == "method"
    assert data["edges"][0]["kind"] == "body_change"
    assert data["nodes"][0]["qualified_name"] == "compute"


class SlowRepository(FakeRepository):
    """Repository whose history queries take a noticeable amount of time."""

    def parents_touching(self, commit_id, path):
        time.sleep(0.1)
        return super().parents_touching(commit_id, path)


def test_max_seconds_budget():
    """Test the walk stops once the wall-clock budget is spent."""
    repo = SlowRepository()
    head = linear(repo, 5)

    history = build(repo, head, history_config=HistoryConfig(max_seconds=0.05))

    assert history.budget_exceeded
    assert len(history.nodes) == 2
    assert history.termination_reasons(1) == [TerminationReason.BUDGET_EXCEEDED]


def test_injected_cache_is_used(repo):
    head = linear(repo, 3)
    cache = RevisionModelCache(repo)

    builder = HistoryBuilder(repo, cache=cache)
    commit = repo.resolve_commit(head)
    model = cache.model_of(head, "calc.py")
    builder.build(commit, "calc.py", model, model.elements[0])

    assert builder.cache is cache
    assert len(cache) == 3


def test_rename_after_line_shift(repo):
    """Test a renamed function found by whole-file comparison when range overlap points elsewhere."""
    repo.add("c0", {"calc.py": "def a():\n    return 1\n\n\n" + version(0) + "\n\ndef c(y):\n    return y\n"})
    repo.add(
        "c1",
        {"calc.py": "def a():\n    return 1\n\n\ndef c(y):\n    return y\n\n\n" + version(0).replace("compute", "tally")},
        ["c0"],
    )

    history = build(repo, "c1", qualified_name="tally")

    assert [e.kind for e in history.edges] == [ChangeKind.RENAME]
    assert history.nodes[1].qualified_name == "compute"
    assert history.report.locator_tiers == {"tier_5": 1}
