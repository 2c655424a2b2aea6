"""Change classification of a matched element pair."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from codetrail.matching.scorer import CandidateScorer, ScoredCandidate
from codetrail.matching.similarity import fragment_ratio
from codetrail.models.config import MatchingConfig
from codetrail.models.elements import CodeElement, ElementKind, StructuralModel
from codetrail.models.history import ChangeKind


@dataclass
class Classification:
    """Outcome of matching one target against one earlier revision."""

    chosen: Optional[ScoredCandidate]
    kind: ChangeKind
    score: float
    scored: List[ScoredCandidate] = field(default_factory=list)

    @property
    def element(self) -> Optional[CodeElement]:
        return self.chosen.element if self.chosen is not None else None


def _extraction_kind(
    target: CodeElement,
    later: StructuralModel,
    candidate: CodeElement,
    earlier: StructuralModel,
    config: MatchingConfig,
) -> Optional[ChangeKind]:
    """EXTRACT or INLINE when the element moved between declarations in one commit."""
    if target.kind in (ElementKind.BLOCK, ElementKind.VARIABLE):
        target_owner = later.enclosing_method(target)
        candidate_owner = earlier.enclosing_method(candidate)
        if target_owner is None or candidate_owner is None:
            return None
        if target_owner.qualified_name == candidate_owner.qualified_name:
            return None
        owner_is_new = not earlier.has_declaration(ElementKind.METHOD, target_owner.qualified_name)
        source_is_gone = not later.has_declaration(ElementKind.METHOD, candidate_owner.qualified_name)
        if owner_is_new and not source_is_gone:
            return ChangeKind.EXTRACT
        if source_is_gone and not owner_is_new:
            return ChangeKind.INLINE
        return None

    if target.qualified_name == candidate.qualified_name:
        return None
    target_is_new = not earlier.has_declaration(target.kind, target.qualified_name)
    source_remains = later.has_declaration(candidate.kind, candidate.qualified_name)
    if target_is_new and source_remains:
        if fragment_ratio(target.body_tokens, candidate.body_tokens) >= config.fragment_ratio:
            return ChangeKind.EXTRACT
    elif not target_is_new and not source_remains:
        # the earlier element was folded into a declaration that already existed
        if fragment_ratio(candidate.body_tokens, target.body_tokens) >= config.fragment_ratio:
            return ChangeKind.INLINE
    return None


def label_change(
    target: CodeElement,
    later: StructuralModel,
    candidate: CodeElement,
    earlier: StructuralModel,
    config: MatchingConfig,
) -> ChangeKind:
    """Label the transition from ``candidate`` (earlier) to ``target`` (later).

    When several labels apply the most structural one wins: extraction and
    inlining, then container change, rename, signature change, body change.
    """
    extraction = _extraction_kind(target, later, candidate, earlier, config)
    if extraction is not None:
        return extraction

    if target.kind in (ElementKind.BLOCK, ElementKind.VARIABLE):
        target_owner = later.enclosing_method(target)
        candidate_owner = earlier.enclosing_method(candidate)
        owners_differ = (target_owner.qualified_name if target_owner else None) != (
            candidate_owner.qualified_name if candidate_owner else None
        )
    else:
        owners_differ = later.container_name(target) != earlier.container_name(candidate)
    if owners_differ or later.path != earlier.path:
        return ChangeKind.CONTAINER_CHANGE

    if target.name != candidate.name:
        # a block whose statement type changed is a body change of that block
        return ChangeKind.BODY_CHANGE if target.kind == ElementKind.BLOCK else ChangeKind.RENAME
    if target.signature != candidate.signature:
        return ChangeKind.SIGNATURE_CHANGE
    if target.tree.digest != candidate.tree.digest or target.body_tokens != candidate.body_tokens:
        return ChangeKind.BODY_CHANGE
    # digests ignore declaration names, a renamed member still changes its container
    if _member_names(later, target) != _member_names(earlier, candidate):
        return ChangeKind.BODY_CHANGE
    return ChangeKind.UNCHANGED


def _member_names(model: StructuralModel, element: CodeElement) -> List[str]:
    return [
        e.name
        for e in model.elements
        if e.container == element.index and e.kind in (ElementKind.CLASS, ElementKind.METHOD)
    ]


class ChangeClassifier:
    """Picks the earlier version of a target among candidates and labels the change."""

    def __init__(self, scorer: CandidateScorer) -> None:
        self.scorer = scorer
        self.config = scorer.config

    def classify(
        self,
        target: CodeElement,
        later: StructuralModel,
        candidates: Sequence[CodeElement],
        earlier: StructuralModel,
    ) -> Classification:
        """Score candidates, select one and label the transition.

        Returns:
            Classification whose ``chosen`` is None (kind INTRODUCED) when no
            candidate reaches the threshold
        """
        scored = self.scorer.score_all(target, later, candidates, earlier)
        chosen = self.scorer.select(scored)
        if chosen is None:
            best = max((s.score for s in scored), default=0.0)
            return Classification(None, ChangeKind.INTRODUCED, best, scored)
        kind = label_change(target, later, chosen.element, earlier, self.config)
        return Classification(chosen, kind, chosen.score, scored)
