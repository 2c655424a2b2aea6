"""History graph construction.

The builder walks backward from a seed element with an explicit FIFO
worklist. Every entry is one of three states:

- ``Active``: the element was confirmed at a commit and its parents still
  have to be examined.
- ``Branching``: a merge commit left several parent versions to resolve,
  each one independently.
- ``Terminated``: the branch stopped, with a reason.

A version of the element that is reached twice (through two sides of a
merge) becomes a single node with two incoming edges and is expanded once.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Set, Tuple, Union

import structlog

from codetrail.exceptions import RepositoryError
from codetrail.extraction.base import RepositoryAccess
from codetrail.history.cache import UNPARSEABLE, CachedModel, RevisionModelCache
from codetrail.history.walker import CommitGraphWalker
from codetrail.matching.classifier import ChangeClassifier
from codetrail.matching.locator import TIER_CONTAINER, TIER_NAME, candidate_tiers, candidates_for
from codetrail.matching.scorer import CandidateScorer
from codetrail.matching.tree_matcher import GreedyTreeMatcher, TreeMatcher
from codetrail.models.commit import Commit, ParentVersion
from codetrail.models.config import HistoryConfig, MatchingConfig
from codetrail.models.elements import CodeElement, ElementKind, StructuralModel
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

logger = structlog.get_logger(__name__)

# Kinds whose history ends at an extraction: the earlier element is another declaration
_STOP_AT_EXTRACT = (ElementKind.CLASS, ElementKind.METHOD, ElementKind.ATTRIBUTE)


class CancellationToken:
    """Cooperative cancellation flag shared with a running ``track()`` call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class Active:
    node: int
    commit: Commit
    path: str
    model: StructuralModel
    element: CodeElement


@dataclass(frozen=True)
class Branching:
    origin: Active
    pending: Tuple[ParentVersion, ...]


@dataclass(frozen=True)
class Terminated:
    node: int
    reason: TerminationReason
    commit_id: Optional[str] = None
    detail: Optional[str] = None


BranchState = Union[Active, Branching, Terminated]


@dataclass(frozen=True)
class _Match:
    commit: Commit
    path: str
    model: StructuralModel
    element: CodeElement
    kind: ChangeKind
    score: float


class _Run:
    """Mutable state of one history reconstruction."""

    def __init__(self, kind: ElementKind, cache: RevisionModelCache) -> None:
        self.kind = kind
        self.cache = cache
        self.nodes: List[HistoryNode] = []
        self.edges: List[ChangeEdge] = []
        self.terminations: List[Termination] = []
        self.report = HistoryReport()
        self.budget_exceeded = False
        self.started = time.monotonic()
        self._by_key: Dict[tuple, int] = {}
        self._edge_keys: Set[Tuple[int, int]] = set()
        self._termination_keys: Set[tuple] = set()

    def model_of(self, commit_id: str, path: str) -> CachedModel:
        cached = (commit_id, path) in self.cache
        model = self.cache.model_of(commit_id, path)
        if cached:
            self.report.cache_hits += 1
        else:
            self.report.cache_misses += 1
            if model is not UNPARSEABLE:
                self.report.models_built += 1
        return model

    def node_for(self, commit: Commit, path: str, element: CodeElement) -> Tuple[HistoryNode, bool]:
        """Node of ``element`` at ``commit``, and whether it was just created."""
        key = (commit.id, path, element.range.start_line, element.range.end_line)
        existing = self._by_key.get(key)
        if existing is not None:
            return self.nodes[existing], False

        node = HistoryNode(
            index=len(self.nodes),
            commit_id=commit.id,
            author_name=commit.author_name,
            authored_at=commit.authored_at,
            committed_at=commit.committed_at,
            file_path=path,
            kind=element.kind,
            qualified_name=element.qualified_name,
            signature=element.signature.text(),
            start_line=element.range.start_line,
            end_line=element.range.end_line,
        )
        self.nodes.append(node)
        self._by_key[key] = node.index
        return node, True

    def add_edge(self, source: int, target: int, kind: ChangeKind, score: float, commit_id: str) -> None:
        if (source, target) in self._edge_keys:
            return
        self._edge_keys.add((source, target))
        self.edges.append(ChangeEdge(source=source, target=target, kind=kind, score=score, commit_id=commit_id))

    def terminate(self, state: Terminated) -> None:
        key = (state.node, state.reason, state.commit_id)
        if key in self._termination_keys:
            return
        self._termination_keys.add(key)
        self.terminations.append(
            Termination(node=state.node, reason=state.reason, commit_id=state.commit_id, detail=state.detail)
        )
        logger.debug(
            "branch_terminated",
            node=state.node,
            reason=state.reason.value,
            commit=state.commit_id[:7] if state.commit_id else None,
        )

    def to_history(self) -> History:
        return History(
            element_kind=self.kind,
            nodes=self.nodes,
            edges=self.edges,
            terminations=self.terminations,
            budget_exceeded=self.budget_exceeded,
            report=self.report,
        )


class HistoryBuilder:
    """Reconstructs the history DAG of one element.

    A builder holds no per-run state, so one instance can serve several
    ``build`` calls, also from different threads when its cache is shared.
    """

    def __init__(
        self,
        repository: RepositoryAccess,
        cache: Optional[RevisionModelCache] = None,
        matcher: Optional[TreeMatcher] = None,
        matching_config: Optional[MatchingConfig] = None,
        history_config: Optional[HistoryConfig] = None,
    ) -> None:
        """Initialize builder.

        Args:
            repository: Repository the history is read from
            cache: Model cache to use (a private one is created if None)
            matcher: Tree matcher (defaults to GreedyTreeMatcher built from matching_config)
            matching_config: Scoring weights, threshold and matcher tunables
            history_config: Budgets and move following
        """
        self.repository = repository
        self.cache = cache if cache is not None else RevisionModelCache(repository)
        self.matching_config = matching_config or MatchingConfig()
        self.history_config = history_config or HistoryConfig()
        self.matcher = matcher or GreedyTreeMatcher(
            min_anchor_height=self.matching_config.min_anchor_height,
            propagation_similarity=self.matching_config.propagation_similarity,
        )
        self.walker = CommitGraphWalker(repository)
        self.classifier = ChangeClassifier(CandidateScorer(self.matching_config, self.matcher))

    def build(
        self,
        commit: Commit,
        path: str,
        model: StructuralModel,
        element: CodeElement,
        cancellation: Optional[CancellationToken] = None,
    ) -> History:
        """Walk back from ``element`` of ``path`` at ``commit``.

        Args:
            commit: Start commit
            path: File holding the seed element
            model: Structural model of the file at the start commit
            element: Seed element
            cancellation: Token checked once per commit visited

        Returns:
            History whose node 0 is the seed
        """
        run = _Run(element.kind, self.cache)
        seed, _ = run.node_for(commit, path, element)
        logger.info(
            "history_started",
            commit=commit.short_id,
            path=path,
            element=element.qualified_name,
            kind=element.kind.value,
        )

        worklist: Deque[BranchState] = deque([Active(seed.index, commit, path, model, element)])
        while worklist:
            state = worklist.popleft()
            if isinstance(state, Terminated):
                run.terminate(state)
            elif isinstance(state, Branching):
                worklist.extend(self._resolve(run, state.origin, state.pending))
            elif self._out_of_budget(run, cancellation):
                self._stop_all(run, state, worklist)
            else:
                worklist.extend(self._advance(run, state))

        history = run.to_history()
        logger.info(
            "history_finished",
            element=element.qualified_name,
            nodes=len(history.nodes),
            changes=len(history.changes()),
            commits=run.report.commits_analysed,
            budget_exceeded=run.budget_exceeded,
        )
        return history

    def _out_of_budget(self, run: _Run, cancellation: Optional[CancellationToken]) -> bool:
        if cancellation is not None and cancellation.cancelled:
            return True
        config = self.history_config
        if config.max_commits is not None and run.report.commits_analysed >= config.max_commits:
            return True
        if config.max_seconds is not None and time.monotonic() - run.started >= config.max_seconds:
            return True
        return False

    def _stop_all(self, run: _Run, current: Active, worklist: Deque[BranchState]) -> None:
        run.budget_exceeded = True
        logger.warning("budget_exceeded", commits=run.report.commits_analysed, pending=len(worklist) + 1)
        run.terminate(Terminated(current.node, TerminationReason.BUDGET_EXCEEDED))
        while worklist:
            state = worklist.popleft()
            if isinstance(state, Terminated):
                run.terminate(state)
            else:
                node = state.node if isinstance(state, Active) else state.origin.node
                run.terminate(Terminated(node, TerminationReason.BUDGET_EXCEEDED))

    def _advance(self, run: _Run, active: Active) -> List[BranchState]:
        """Examine the parents of an active branch."""
        started = time.monotonic()
        run.report.commits_analysed += 1
        try:
            return self._next_states(run, active)
        finally:
            run.report.processing.append(
                ProcessingInfo(
                    commit_id=active.commit.id,
                    file_path=active.path,
                    elapsed_ms=(time.monotonic() - started) * 1000,
                )
            )

    def _next_states(self, run: _Run, active: Active) -> List[BranchState]:
        run.report.walker_calls += 1
        try:
            versions = self.walker.parent_versions_of(active.commit.id, active.path)
        except RepositoryError as e:
            logger.warning("walker_failed", commit=active.commit.short_id, path=active.path, error=str(e))
            return [Terminated(active.node, TerminationReason.REPOSITORY_ERROR, active.commit.id, str(e))]

        if len(versions) > 1:
            logger.debug("branching", commit=active.commit.short_id, parents=len(versions))
            return [Branching(active, tuple(versions))]
        if versions:
            return self._resolve(run, active, tuple(versions))

        # The file did not exist before this commit
        states: List[BranchState] = []
        if self.history_config.follow_moves:
            for parent_id in active.commit.parent_ids:
                moved = self._find_moved(run, active, parent_id)
                if moved is not None:
                    states.extend(self._extend(run, active, moved))
        return states or [Terminated(active.node, TerminationReason.INTRODUCED)]

    def _resolve(self, run: _Run, origin: Active, pending: Tuple[ParentVersion, ...]) -> List[BranchState]:
        """Match the element in every pending parent version independently."""
        states: List[BranchState] = []
        matched = False
        failed = False
        for version in pending:
            try:
                match = self._match_in(run, origin, version.commit, version.path)
            except RepositoryError as e:
                logger.warning("revision_unreadable", commit=version.commit.short_id, path=version.path, error=str(e))
                states.append(
                    Terminated(origin.node, TerminationReason.REPOSITORY_ERROR, version.commit.id, str(e))
                )
                failed = True
                continue
            if match is UNPARSEABLE:
                states.append(Terminated(origin.node, TerminationReason.UNPARSEABLE, version.commit.id))
                failed = True
                continue
            if match is None and self.history_config.follow_moves:
                match = self._find_moved(run, origin, version.via_parent)
            if match is None:
                continue
            matched = True
            states.extend(self._extend(run, origin, match))

        if not matched and not failed:
            states.append(Terminated(origin.node, TerminationReason.INTRODUCED))
        return states

    def _match_in(self, run: _Run, origin: Active, commit: Commit, path: str):
        """Earlier version of the origin element in ``path`` at ``commit``.

        A name-based tier is decisive. When every candidate of a later tier
        scores below the threshold the next tier is tried, down to the
        whole-file comparison.

        Returns:
            _Match, None if the element is not there, or UNPARSEABLE
        """
        model = run.model_of(commit.id, path)
        if model is UNPARSEABLE:
            return UNPARSEABLE

        tiers = candidate_tiers(
            origin.element,
            origin.model,
            model,
            self.matcher,
            self.matching_config.max_ast_candidates,
        )
        rejected: Set[int] = set()
        best = 0.0
        for found in tiers:
            candidates = [c for c in found.candidates if c.index not in rejected]
            if candidates:
                classification = self.classifier.classify(origin.element, origin.model, candidates, model)
                if classification.chosen is not None:
                    run.report.count_tier(found.tier)
                    return _Match(
                        commit, path, model, classification.element, classification.kind, classification.score
                    )
                best = max(best, classification.score)
                rejected.update(c.index for c in candidates)
            if found.tier <= TIER_NAME:
                break

        if rejected:
            logger.debug(
                "no_candidate_above_threshold",
                commit=commit.short_id,
                element=origin.element.qualified_name,
                best=round(best, 3),
            )
        return None

    def _find_moved(self, run: _Run, origin: Active, parent_id: str) -> Optional[_Match]:
        """Look for the element in the other files the origin commit changed."""
        try:
            paths = self.repository.changed_paths(origin.commit.id, parent_id)
        except RepositoryError as e:
            logger.warning("changed_paths_failed", commit=origin.commit.short_id, error=str(e))
            return None

        suffixes = tuple(self.history_config.source_suffixes)
        paths = [p for p in paths if p != origin.path and p.endswith(suffixes)]
        if not paths:
            return None

        try:
            parent = self.repository.resolve_commit(parent_id)
        except RepositoryError as e:
            logger.warning("parent_unreadable", commit=parent_id[:7], error=str(e))
            return None

        best: Optional[_Match] = None
        for path in paths:
            try:
                model = run.model_of(parent.id, path)
            except RepositoryError as e:
                logger.debug("move_source_unreadable", commit=parent.short_id, path=path, error=str(e))
                continue
            if model is UNPARSEABLE:
                continue
            # Range and whole-file tiers say nothing about another file
            found = candidates_for(origin.element, origin.model, model)
            if not found or found.tier > TIER_CONTAINER:
                continue
            classification = self.classifier.classify(origin.element, origin.model, found.candidates, model)
            if classification.chosen is None:
                continue
            if best is None or classification.score > best.score:
                best = _Match(parent, path, model, classification.element, classification.kind, classification.score)

        if best is not None:
            logger.info("element_moved", commit=origin.commit.short_id, old_path=best.path, new_path=origin.path)
        return best

    def _extend(self, run: _Run, origin: Active, match: _Match) -> List[BranchState]:
        node, created = run.node_for(match.commit, match.path, match.element)
        run.add_edge(origin.node, node.index, match.kind, match.score, origin.commit.id)
        logger.debug(
            "element_matched",
            commit=match.commit.short_id,
            element=match.element.qualified_name,
            change=match.kind.value,
            score=round(match.score, 3),
        )
        if not created:
            return []
        if match.kind == ChangeKind.EXTRACT and run.kind in _STOP_AT_EXTRACT:
            return [Terminated(node.index, TerminationReason.EXTRACTED, match.commit.id)]
        return [Active(node.index, match.commit, match.path, match.model, match.element)]
