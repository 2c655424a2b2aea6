"""Shared fixtures: throwaway Git repositories."""

import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence

import git
import pytest

from codetrail.extraction import GitRepository, PythonModelBuilder


@pytest.fixture
def git_repo():
    """Create an empty temporary Git repository."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo_path = Path(tmpdir)
        repo = git.Repo.init(repo_path)

        # Configure git
        repo.config_writer().set_value("user", "name", "Test User").release()
        repo.config_writer().set_value("user", "email", "test@example.com").release()

        yield repo
        repo.close()


@pytest.fixture
def commit_files(git_repo) -> Callable[..., str]:
    """Write files and commit them; returns the new commit's sha.

    ``parents`` creates a commit with explicit parents without moving HEAD
    unless ``head`` is True, which is how merges and side branches are built.
    """
    root = Path(git_repo.working_tree_dir)

    def _commit(
        files: dict,
        message: str = "Update",
        parents: Optional[Sequence[str]] = None,
        head: bool = True,
        remove: Sequence[str] = (),
    ) -> str:
        for path, content in files.items():
            target = root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        if files:
            git_repo.index.add(list(files))
        if remove:
            git_repo.index.remove(list(remove), working_tree=True)
        parent_commits = [git_repo.commit(p) for p in parents] if parents is not None else None
        commit = git_repo.index.commit(message, parent_commits=parent_commits, head=head)
        return commit.hexsha

    return _commit


@pytest.fixture
def repository(git_repo):
    """GitRepository over the temporary repository."""
    with GitRepository(git_repo) as repo:
        yield repo


@pytest.fixture
def build_model():
    """Parse a source string into a structural model."""
    builder = PythonModelBuilder()

    def _build(source: str, path: str = "module.py"):
        return builder.build_model(source.encode("utf-8"), path)

    return _build
