"""Configuration models."""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatchingConfig(BaseSettings):
    """Tunables of the candidate scorer and the tree matcher.

    Settings can be loaded from environment variables or .env file.
    All settings are prefixed with CODETRAIL_MATCH_ (e.g. CODETRAIL_MATCH_THRESHOLD).
    Weights are normalized, only their ratios matter.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODETRAIL_MATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum score for a candidate to be accepted",
    )

    # Weights favour signature and coverage so a pure rename still scores high
    name_weight: float = Field(default=0.2, ge=0.0, description="Weight of name similarity")
    signature_weight: float = Field(default=0.2, ge=0.0, description="Weight of signature similarity")
    coverage_weight: float = Field(default=0.5, ge=0.0, description="Weight of AST coverage")
    container_weight: float = Field(default=0.1, ge=0.0, description="Weight of container similarity")

    min_anchor_height: int = Field(
        default=2,
        ge=1,
        description="Smallest subtree height anchored by the top-down phase",
    )
    propagation_similarity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Dice similarity needed to match inner nodes bottom-up",
    )
    max_ast_candidates: int = Field(
        default=3,
        ge=1,
        description="Candidates kept from whole-file AST comparison",
    )
    fragment_ratio: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Share of target tokens that must appear in order for Extract/Inline",
    )

    @model_validator(mode="after")
    def _check_weights(self) -> "MatchingConfig":
        if self.total_weight <= 0:
            raise ValueError("At least one scoring weight must be positive")
        return self

    @property
    def total_weight(self) -> float:
        return self.name_weight + self.signature_weight + self.coverage_weight + self.container_weight


class HistoryConfig(BaseSettings):
    """Budgets and switches of the history walk.

    All settings are prefixed with CODETRAIL_ (e.g. CODETRAIL_MAX_COMMITS).
    """

    model_config = SettingsConfigDict(
        env_prefix="CODETRAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_commits: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum commits visited per track() call (None for unlimited)",
    )
    max_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Wall-clock budget per track() call in seconds",
    )
    follow_moves: bool = Field(
        default=True,
        description="Search other files changed in a commit when the element disappears",
    )
    source_suffixes: list[str] = Field(
        default_factory=lambda: [".py"],
        description="Suffixes of files searched when following moves",
    )
    log_level: str = Field(default="INFO", description="Log level used by the CLI")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()
