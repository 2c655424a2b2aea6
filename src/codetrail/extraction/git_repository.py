"""Git repository access backed by GitPython."""

import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

import git
import structlog
from git import Repo

from codetrail.exceptions import InvalidRepository, RepositoryError
from codetrail.extraction.base import RepositoryAccess
from codetrail.models.commit import Commit, ParentVersion

logger = structlog.get_logger(__name__)


class GitRepository(RepositoryAccess):
    """Reads commits and blobs from a Git repository.

    GitPython keeps long-running ``git cat-file`` processes per repository,
    which are not safe to share between threads, so every call holds a lock.
    """

    def __init__(self, repo: Union[Path, str, Repo]) -> None:
        """Open a repository.

        Args:
            repo: Path to the working tree or an already opened GitPython Repo

        Raises:
            InvalidRepository: If the path is missing or not a Git repository
        """
        self._lock = threading.RLock()
        if isinstance(repo, Repo):
            self.repo = repo
            return

        repo_path = Path(repo)
        if not repo_path.exists():
            raise InvalidRepository(f"Repository path does not exist: {repo_path}")
        try:
            self.repo = Repo(repo_path)
        except git.exc.InvalidGitRepositoryError as e:
            raise InvalidRepository(f"Invalid Git repository: {repo_path}") from e

    def __enter__(self) -> "GitRepository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the git helper processes."""
        with self._lock:
            self.repo.close()

    def resolve_commit(self, commit_id: str) -> Commit:
        with self._lock:
            return self._to_commit(self._commit(commit_id))

    def read_blob(self, commit_id: str, path: str) -> bytes:
        with self._lock:
            commit = self._commit(commit_id)
            blob = self._blob(commit, path)
            if blob is None:
                raise RepositoryError(f"File {path} not found in commit {commit_id[:7]}", commit_id, path)
            try:
                return blob.data_stream.read()
            except (git.exc.GitCommandError, ValueError) as e:
                raise RepositoryError(f"Cannot read {path} at {commit_id[:7]}: {e}", commit_id, path) from e

    def parents_touching(self, commit_id: str, path: str) -> List[ParentVersion]:
        with self._lock:
            commit = self._commit(commit_id)
            own = self._blob(commit, path)

            candidates: List[Tuple[git.Commit, str]] = []
            for parent in commit.parents:
                parent_path = self._path_in_parent(parent, commit, path)
                if parent_path is None:
                    continue
                theirs = self._blob(parent, parent_path)
                if own is not None and theirs is not None and theirs.hexsha == own.hexsha:
                    # Identical to this parent: the other parents cannot have
                    # contributed the current content.
                    candidates = [(parent, parent_path)]
                    break
                candidates.append((parent, parent_path))

            versions = []
            for parent, parent_path in candidates:
                last = self._last_touching(parent, parent_path)
                versions.append(
                    ParentVersion(
                        commit=self._to_commit(last),
                        path=parent_path,
                        via_parent=parent.hexsha,
                    )
                )
            return versions

    def changed_paths(self, commit_id: str, parent_id: str) -> List[str]:
        with self._lock:
            commit = self._commit(commit_id)
            parent = self._commit(parent_id)
            try:
                diff_index = parent.diff(commit)
            except git.exc.GitCommandError as e:
                raise RepositoryError(f"Cannot diff {parent_id[:7]}..{commit_id[:7]}: {e}", commit_id) from e
            paths = {diff.a_path for diff in diff_index if diff.a_path and not diff.new_file}
            return sorted(paths)

    def _commit(self, commit_id: str) -> git.Commit:
        try:
            return self.repo.commit(commit_id)
        except (git.exc.BadName, ValueError) as e:
            raise RepositoryError(f"Commit not found: {commit_id}", commit_id) from e

    def _blob(self, commit: git.Commit, path: str) -> Optional[git.Blob]:
        try:
            item = commit.tree / path
        except KeyError:
            # File doesn't exist in this commit
            return None
        return item if item.type == "blob" else None

    def _path_in_parent(self, parent: git.Commit, commit: git.Commit, path: str) -> Optional[str]:
        """Path the file had in ``parent``, following a rename made by ``commit``."""
        if self._blob(parent, path) is not None:
            return path
        try:
            diff_index = parent.diff(commit)
        except git.exc.GitCommandError as e:
            raise RepositoryError(f"Cannot diff {parent.hexsha[:7]}..{commit.hexsha[:7]}: {e}", commit.hexsha) from e
        for diff in diff_index:
            if diff.renamed_file and diff.b_path == path:
                logger.debug("rename_followed", commit=commit.hexsha[:7], old_path=diff.a_path, new_path=path)
                return diff.a_path
        return None

    def _last_touching(self, start: git.Commit, path: str) -> git.Commit:
        """Most recent commit reachable from ``start`` that modified ``path``."""
        try:
            for touched in self.repo.iter_commits(start.hexsha, paths=path, max_count=1):
                return touched
        except git.exc.GitCommandError as e:
            raise RepositoryError(f"Cannot read history of {path}: {e}", start.hexsha, path) from e
        return start

    def _to_commit(self, commit: git.Commit) -> Commit:
        message_lines = commit.message.strip().split("\n")
        return Commit(
            id=commit.hexsha,
            short_id=commit.hexsha[:7],
            parent_ids=[p.hexsha for p in commit.parents],
            author_name=commit.author.name or "",
            author_email=commit.author.email or "",
            committer_name=commit.committer.name or "",
            committer_email=commit.committer.email or "",
            authored_at=datetime.fromtimestamp(commit.authored_date),
            committed_at=datetime.fromtimestamp(commit.committed_date),
            message_summary=message_lines[0] if message_lines else "",
        )
