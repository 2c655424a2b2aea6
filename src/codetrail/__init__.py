"""Change history of individual code elements across a Git commit graph."""

from codetrail.exceptions import (
    CodetrailError,
    InvalidRepository,
    InvalidSeed,
    ParseError,
    RepositoryError,
    TrackerConfigError,
)
from codetrail.extraction import GitRepository, PythonModelBuilder
from codetrail.history import CancellationToken, HistoryBuilder, RevisionModelCache
from codetrail.models import ChangeKind, History, TerminationReason
from codetrail.trackers import (
    AttributeTracker,
    BlockTracker,
    ClassTracker,
    MethodTracker,
    VariableTracker,
    track_all,
)

__version__ = "0.1.0"

__all__ = [
    "CodetrailError",
    "InvalidRepository",
    "InvalidSeed",
    "ParseError",
    "RepositoryError",
    "TrackerConfigError",
    "GitRepository",
    "PythonModelBuilder",
    "CancellationToken",
    "HistoryBuilder",
    "RevisionModelCache",
    "ChangeKind",
    "History",
    "TerminationReason",
    "AttributeTracker",
    "BlockTracker",
    "ClassTracker",
    "MethodTracker",
    "VariableTracker",
    "track_all",
]
