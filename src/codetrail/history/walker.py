"""Backward navigation of the commit graph for one file."""

import threading
from typing import List

import structlog

from codetrail.extraction.base import RepositoryAccess
from codetrail.models.commit import ParentVersion

logger = structlog.get_logger(__name__)


class CommitGraphWalker:
    """Yields the previous versions of a file, one per contributing parent.

    Commits that did not modify the file are skipped by the repository, so
    every version returned holds a different blob than the commit it was
    reached from (or a renamed path).
    """

    def __init__(self, repository: RepositoryAccess) -> None:
        self.repository = repository
        self._lock = threading.Lock()
        self.calls = 0

    def parent_versions_of(self, commit_id: str, path: str) -> List[ParentVersion]:
        """Previous versions of ``path`` before ``commit_id``.

        Args:
            commit_id: Commit holding the current version
            path: File path at that commit

        Returns:
            Versions in parent order, unique by commit id; empty for a root
            commit or a commit that added the file

        Raises:
            RepositoryError: If the commit graph cannot be read
        """
        with self._lock:
            self.calls += 1

        versions = self.repository.parents_touching(commit_id, path)
        seen = set()
        unique = []
        for version in versions:
            if version.commit.id in seen:
                continue
            seen.add(version.commit.id)
            unique.append(version)

        logger.debug(
            "parent_versions",
            commit=commit_id[:7],
            path=path,
            parents=[v.commit.short_id for v in unique],
        )
        return unique
