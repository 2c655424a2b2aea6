"""Candidate scoring and selection."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from codetrail.matching.similarity import normalized_similarity
from codetrail.matching.tree_matcher import TreeMatcher
from codetrail.models.config import MatchingConfig
from codetrail.models.elements import CodeElement, StructuralModel


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate together with the parts of its score."""

    element: CodeElement
    score: float
    name_similarity: float
    signature_similarity: float
    coverage: float
    container_similarity: float
    range_delta: int


def container_path(model: StructuralModel, element: CodeElement) -> str:
    return f"{model.path}::{model.container_name(element)}"


class CandidateScorer:
    """Scores candidates by name, signature, AST coverage and container."""

    def __init__(self, config: MatchingConfig, matcher: TreeMatcher) -> None:
        self.config = config
        self.matcher = matcher

    def score(
        self,
        target: CodeElement,
        later: StructuralModel,
        candidate: CodeElement,
        earlier: StructuralModel,
    ) -> ScoredCandidate:
        config = self.config
        name = normalized_similarity(target.name, candidate.name)
        signature = normalized_similarity(target.signature.tokens(), candidate.signature.tokens())
        coverage = self.matcher.match(target.tree, candidate.tree).coverage(target.tree)
        container = normalized_similarity(container_path(later, target), container_path(earlier, candidate))

        total = (
            config.name_weight * name
            + config.signature_weight * signature
            + config.coverage_weight * coverage
            + config.container_weight * container
        ) / config.total_weight
        return ScoredCandidate(
            element=candidate,
            score=min(1.0, max(0.0, total)),
            name_similarity=name,
            signature_similarity=signature,
            coverage=coverage,
            container_similarity=container,
            range_delta=target.range.delta(candidate.range),
        )

    def score_all(
        self,
        target: CodeElement,
        later: StructuralModel,
        candidates: Sequence[CodeElement],
        earlier: StructuralModel,
    ) -> List[ScoredCandidate]:
        return [self.score(target, later, candidate, earlier) for candidate in candidates]

    def select(self, scored: Sequence[ScoredCandidate]) -> Optional[ScoredCandidate]:
        """Best candidate at or above the threshold; None means "introduced here".

        Ties are broken by the smallest source-range delta, then by position
        in the earlier model.
        """
        eligible = [s for s in scored if s.score >= self.config.threshold]
        if not eligible:
            return None
        return min(eligible, key=lambda s: (-s.score, s.range_delta, s.element.index))
