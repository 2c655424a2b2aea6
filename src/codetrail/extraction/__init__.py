"""Repository access and source front ends."""

from codetrail.extraction.base import ModelBuilder, RepositoryAccess
from codetrail.extraction.git_repository import GitRepository
from codetrail.extraction.python_model import PythonModelBuilder

__all__ = [
    "ModelBuilder",
    "RepositoryAccess",
    "GitRepository",
    "PythonModelBuilder",
]
