"""Data models for reconstructed element histories."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from codetrail.models.elements import ElementKind


class ChangeKind(str, Enum):
    """Label of a transition between two versions of an element."""

    UNCHANGED = "unchanged"
    BODY_CHANGE = "body_change"
    RENAME = "rename"
    SIGNATURE_CHANGE = "signature_change"
    CONTAINER_CHANGE = "container_change"
    EXTRACT = "extract"
    INLINE = "inline"
    INTRODUCED = "introduced"
    REMOVED = "removed"


class TerminationReason(str, Enum):
    """Why a history branch stopped."""

    INTRODUCED = "introduced"
    UNPARSEABLE = "unparseable"
    REPOSITORY_ERROR = "repository_error"
    BUDGET_EXCEEDED = "budget_exceeded"
    EXTRACTED = "extracted"


class HistoryNode(BaseModel):
    """A confirmed snapshot of the tracked element at one commit."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Position of the node in History.nodes")
    commit_id: str = Field(..., description="Commit the snapshot belongs to")
    author_name: str = Field(..., description="Author of the commit")
    authored_at: datetime = Field(..., description="Authored timestamp")
    committed_at: datetime = Field(..., description="Committed timestamp")
    file_path: str = Field(..., description="Path of the file holding the element")
    kind: ElementKind = Field(..., description="Element kind")
    qualified_name: str = Field(..., description="Qualified name of the element")
    signature: str = Field("", description="Rendered signature or block header")
    start_line: int = Field(..., description="First line of the element")
    end_line: int = Field(..., description="Last line of the element")

    @property
    def key(self) -> tuple:
        return (self.commit_id, self.file_path, self.start_line, self.end_line)


class ChangeEdge(BaseModel):
    """Classified transition from a later node to an earlier one."""

    model_config = ConfigDict(frozen=True)

    source: int = Field(..., description="Index of the later node")
    target: int = Field(..., description="Index of the earlier node")
    kind: ChangeKind = Field(..., description="Change classification")
    score: float = Field(..., ge=0.0, le=1.0, description="Similarity score of the match")
    commit_id: str = Field(..., description="Commit in which the change happened")


class Termination(BaseModel):
    """A branch of the history stopped at ``node``."""

    model_config = ConfigDict(frozen=True)

    node: int = Field(..., description="Index of the last node of the branch")
    reason: TerminationReason = Field(..., description="Why the branch stopped")
    commit_id: Optional[str] = Field(None, description="Parent commit involved, when there was one")
    detail: Optional[str] = Field(None, description="Error message for failure reasons")


class ProcessingInfo(BaseModel):
    """Time spent on one commit of the walk."""

    commit_id: str
    file_path: str
    elapsed_ms: float


class HistoryReport(BaseModel):
    """Counters collected while a history was reconstructed."""

    commits_analysed: int = 0
    walker_calls: int = 0
    models_built: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    locator_tiers: Dict[str, int] = Field(default_factory=dict)
    processing: List[ProcessingInfo] = Field(default_factory=list)

    def count_tier(self, tier: int) -> None:
        key = f"tier_{tier}"
        self.locator_tiers[key] = self.locator_tiers.get(key, 0) + 1


class History(BaseModel):
    """History DAG of one element, rooted at the seed node (index 0)."""

    element_kind: ElementKind
    nodes: List[HistoryNode] = Field(default_factory=list)
    edges: List[ChangeEdge] = Field(default_factory=list)
    terminations: List[Termination] = Field(default_factory=list)
    budget_exceeded: bool = False
    report: HistoryReport = Field(default_factory=HistoryReport)

    @property
    def seed(self) -> HistoryNode:
        return self.nodes[0]

    def outgoing(self, node: int) -> List[ChangeEdge]:
        return [edge for edge in self.edges if edge.source == node]

    def incoming(self, node: int) -> List[ChangeEdge]:
        return [edge for edge in self.edges if edge.target == node]

    def terminal_nodes(self) -> List[HistoryNode]:
        indices = sorted({termination.node for termination in self.terminations})
        return [self.nodes[index] for index in indices]

    def termination_reasons(self, node: int) -> List[TerminationReason]:
        return [t.reason for t in self.terminations if t.node == node]

    def changes(self) -> List[ChangeEdge]:
        """Edges that record an actual change."""
        return [edge for edge in self.edges if edge.kind != ChangeKind.UNCHANGED]

    def chronological(self) -> List[HistoryNode]:
        """Nodes ordered oldest first."""
        return sorted(self.nodes, key=lambda node: (node.committed_at, -node.index))

    def introduced_at(self) -> List[HistoryNode]:
        """Nodes at which the element first appeared, one per introducing branch."""
        return [self.nodes[t.node] for t in self.terminations if t.reason == TerminationReason.INTRODUCED]
