"""Node correspondence between two syntax trees.

``GreedyTreeMatcher`` follows the classic two-phase strategy: identical
subtrees are anchored top-down, largest first, then the remaining inner
nodes are matched bottom-up by how many of their descendants already map
into the same counterpart.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from codetrail.models.elements import SyntaxNode


class NodeMapping:
    """One-to-one mapping from nodes of tree A to nodes of tree B."""

    def __init__(self) -> None:
        self._forward: Dict[int, SyntaxNode] = {}
        self._backward: Dict[int, SyntaxNode] = {}

    def __len__(self) -> int:
        return len(self._forward)

    def add(self, src: SyntaxNode, dst: SyntaxNode) -> None:
        self._forward[id(src)] = dst
        self._backward[id(dst)] = src

    def mapped(self, src: SyntaxNode) -> Optional[SyntaxNode]:
        return self._forward.get(id(src))

    def has_src(self, src: SyntaxNode) -> bool:
        return id(src) in self._forward

    def has_dst(self, dst: SyntaxNode) -> bool:
        return id(dst) in self._backward

    def coverage(self, subtree: SyntaxNode) -> float:
        """Matched nodes / total nodes of a subtree of tree A."""
        matched = sum(1 for node in subtree.preorder() if id(node) in self._forward)
        return matched / subtree.size


class TreeMatcher(ABC):
    """Computes a best-effort node mapping between two trees."""

    @abstractmethod
    def match(self, tree_a: SyntaxNode, tree_b: SyntaxNode) -> NodeMapping:
        """Map nodes of ``tree_a`` onto nodes of ``tree_b``."""


class GreedyTreeMatcher(TreeMatcher):
    """Anchor-then-propagate matcher."""

    def __init__(self, min_anchor_height: int = 2, propagation_similarity: float = 0.5) -> None:
        self.min_anchor_height = min_anchor_height
        self.propagation_similarity = propagation_similarity

    def match(self, tree_a: SyntaxNode, tree_b: SyntaxNode) -> NodeMapping:
        mapping = NodeMapping()
        self._anchor(tree_a, tree_b, mapping)
        self._propagate(tree_a, tree_b, mapping)
        return mapping

    def _anchor(self, tree_a: SyntaxNode, tree_b: SyntaxNode, mapping: NodeMapping) -> None:
        by_digest: Dict[str, List[SyntaxNode]] = {}
        for node in tree_b.preorder():
            if node.height >= self.min_anchor_height:
                by_digest.setdefault(node.digest, []).append(node)

        order = {id(node): position for position, node in enumerate(tree_a.preorder())}
        sources = sorted(
            (node for node in tree_a.preorder() if node.height >= self.min_anchor_height),
            key=lambda node: (-node.height, order[id(node)]),
        )
        for src in sources:
            if mapping.has_src(src):
                continue
            free = [
                dst
                for dst in by_digest.get(src.digest, ())
                if not mapping.has_dst(dst) and dst.size == src.size
            ]
            if not free:
                continue
            dst = min(free, key=lambda d: abs(d.start_line - src.start_line))
            self._map_subtree(src, dst, mapping)

    def _propagate(self, tree_a: SyntaxNode, tree_b: SyntaxNode, mapping: NodeMapping) -> None:
        parents: Dict[int, SyntaxNode] = {}
        for node in tree_b.preorder():
            for child in node.children:
                parents[id(child)] = node

        for src in tree_a.postorder():
            if mapping.has_src(src) or not src.children:
                continue
            dst = self._best_container(src, parents, mapping)
            if dst is None:
                continue
            mapping.add(src, dst)
            self._recover_children(src, dst, mapping)

        if not mapping.has_src(tree_a) and not mapping.has_dst(tree_b) and tree_a.label == tree_b.label:
            mapping.add(tree_a, tree_b)
            self._recover_children(tree_a, tree_b, mapping)

    def _best_container(
        self, src: SyntaxNode, parents: Dict[int, SyntaxNode], mapping: NodeMapping
    ) -> Optional[SyntaxNode]:
        """Unmapped node of tree B with src's label sharing most mapped descendants."""
        common: Dict[int, int] = {}
        nodes: Dict[int, SyntaxNode] = {}
        for descendant in src.preorder():
            if descendant is src:
                continue
            counterpart = mapping.mapped(descendant)
            if counterpart is None:
                continue
            ancestor = parents.get(id(counterpart))
            while ancestor is not None:
                if ancestor.label == src.label and not mapping.has_dst(ancestor):
                    common[id(ancestor)] = common.get(id(ancestor), 0) + 1
                    nodes[id(ancestor)] = ancestor
                ancestor = parents.get(id(ancestor))

        best: Optional[SyntaxNode] = None
        best_dice = 0.0
        for key, shared in common.items():
            candidate = nodes[key]
            dice = 2.0 * shared / ((src.size - 1) + (candidate.size - 1))
            if dice > best_dice:
                best, best_dice = candidate, dice
        if best is not None and best_dice >= self.propagation_similarity:
            return best
        return None

    def _recover_children(self, src: SyntaxNode, dst: SyntaxNode, mapping: NodeMapping) -> None:
        """Pair still unmapped children of two matched nodes by label and value."""
        free = [child for child in dst.children if not mapping.has_dst(child)]
        for child in src.children:
            if mapping.has_src(child):
                continue
            for candidate in free:
                if candidate.label == child.label and candidate.value == child.value:
                    free.remove(candidate)
                    if candidate.digest == child.digest and candidate.size == child.size:
                        self._map_subtree(child, candidate, mapping)
                    else:
                        mapping.add(child, candidate)
                        self._recover_children(child, candidate, mapping)
                    break

    @staticmethod
    def _map_subtree(src: SyntaxNode, dst: SyntaxNode, mapping: NodeMapping) -> None:
        for a, b in zip(src.preorder(), dst.preorder()):
            if not mapping.has_src(a) and not mapping.has_dst(b):
                mapping.add(a, b)
