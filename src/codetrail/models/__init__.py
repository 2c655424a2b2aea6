"""Data models for element history tracking."""

from codetrail.models.commit import Commit, ParentVersion
from codetrail.models.config import HistoryConfig, MatchingConfig
from codetrail.models.elements import (
    CodeElement,
    ElementKind,
    Signature,
    SourceRange,
    StructuralModel,
    SyntaxNode,
)
from codetrail.models.history import (
    ChangeEdge,
    ChangeKind,
    History,
    HistoryNode,
    HistoryReport,
    ProcessingInfo,
    Termination,
    TerminationReason,
)
from codetrail.models.locators import (
    AttributeLocator,
    BlockLocator,
    ClassLocator,
    MethodLocator,
    TrackerConfig,
    VariableLocator,
)

__all__ = [
    "Commit",
    "ParentVersion",
    "HistoryConfig",
    "MatchingConfig",
    "CodeElement",
    "ElementKind",
    "Signature",
    "SourceRange",
    "StructuralModel",
    "SyntaxNode",
    "ChangeEdge",
    "ChangeKind",
    "History",
    "HistoryNode",
    "HistoryReport",
    "ProcessingInfo",
    "Termination",
    "TerminationReason",
    "AttributeLocator",
    "BlockLocator",
    "ClassLocator",
    "MethodLocator",
    "TrackerConfig",
    "VariableLocator",
]
