"""History reconstruction: commit walking, model caching and graph building."""

from codetrail.history.builder import (
    Active,
    Branching,
    CancellationToken,
    HistoryBuilder,
    Terminated,
)
from codetrail.history.cache import UNPARSEABLE, RevisionModelCache
from codetrail.history.walker import CommitGraphWalker

__all__ = [
    "Active",
    "Branching",
    "CancellationToken",
    "HistoryBuilder",
    "Terminated",
    "UNPARSEABLE",
    "RevisionModelCache",
    "CommitGraphWalker",
]
