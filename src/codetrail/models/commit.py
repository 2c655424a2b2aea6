"""Data models for Git commit information."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Commit(BaseModel):
    """An immutable node of the commit graph."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "abc123def456",
                "short_id": "abc123d",
                "parent_ids": ["parent123"],
                "author_name": "John Doe",
                "author_email": "john@example.com",
                "committer_name": "John Doe",
                "committer_email": "john@example.com",
                "authored_at": "2024-01-15T10:30:00Z",
                "committed_at": "2024-01-15T10:30:00Z",
                "message_summary": "Rename foo to bar",
            }
        },
    )

    id: str = Field(..., description="Full commit SHA hash")
    short_id: str = Field(..., description="Short commit SHA hash (7 chars)")
    parent_ids: List[str] = Field(default_factory=list, description="Parent commit hashes")
    author_name: str = Field(..., description="Author name")
    author_email: str = Field("", description="Author email")
    committer_name: str = Field("", description="Committer name")
    committer_email: str = Field("", description="Committer email")
    authored_at: datetime = Field(..., description="Authored timestamp")
    committed_at: datetime = Field(..., description="Committed timestamp")
    message_summary: Optional[str] = Field(None, description="First line of commit message")

    @property
    def is_merge(self) -> bool:
        return len(self.parent_ids) > 1

    @property
    def is_root(self) -> bool:
        return not self.parent_ids


class ParentVersion(BaseModel):
    """The previous version of a file as seen from one parent of a commit."""

    model_config = ConfigDict(frozen=True)

    commit: Commit = Field(..., description="Commit that produced this version of the file")
    path: str = Field(..., description="Path of the file in that commit")
    via_parent: str = Field(..., description="Direct parent the version was reached through")
