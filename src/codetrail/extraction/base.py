"""Contracts of the collaborators the history engine consumes."""

from abc import ABC, abstractmethod
from typing import List

from codetrail.models.commit import Commit, ParentVersion
from codetrail.models.elements import StructuralModel


class RepositoryAccess(ABC):
    """Read-only access to a version-controlled repository."""

    @abstractmethod
    def resolve_commit(self, commit_id: str) -> Commit:
        """Resolve a (full or short) commit id.

        Raises:
            RepositoryError: If the commit cannot be read
        """

    @abstractmethod
    def parents_touching(self, commit_id: str, path: str) -> List[ParentVersion]:
        """Previous versions of ``path`` as seen from each parent of a commit.

        Parents whose tree does not hold the file (after rename detection)
        are left out. Each returned version points at the commit that last
        modified the file on that parent's line of history.

        Raises:
            RepositoryError: If the commit graph cannot be read
        """

    @abstractmethod
    def read_blob(self, commit_id: str, path: str) -> bytes:
        """Raw content of ``path`` at ``commit_id``.

        Raises:
            RepositoryError: If the file does not exist or cannot be read
        """

    def changed_paths(self, commit_id: str, parent_id: str) -> List[str]:
        """Paths of the parent's files modified, deleted or renamed by the commit."""
        return []


class ModelBuilder(ABC):
    """Language front end turning source bytes into a structural model."""

    @abstractmethod
    def build_model(self, source: bytes, path: str) -> StructuralModel:
        """Build the structural model of one file.

        Raises:
            ParseError: If the source cannot be parsed
        """
