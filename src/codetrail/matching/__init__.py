"""Element matching across revisions."""

from codetrail.matching.classifier import ChangeClassifier, Classification, label_change
from codetrail.matching.locator import LocatorResult, candidate_tiers, candidates_for, find_seed
from codetrail.matching.scorer import CandidateScorer, ScoredCandidate
from codetrail.matching.tree_matcher import GreedyTreeMatcher, NodeMapping, TreeMatcher

__all__ = [
    "ChangeClassifier",
    "Classification",
    "label_change",
    "LocatorResult",
    "candidate_tiers",
    "candidates_for",
    "find_seed",
    "CandidateScorer",
    "ScoredCandidate",
    "GreedyTreeMatcher",
    "NodeMapping",
    "TreeMatcher",
]
