"""String and sequence similarity measures used by the scorer."""

from difflib import SequenceMatcher
from typing import Hashable, Sequence


def edit_distance(a: Sequence[Hashable], b: Sequence[Hashable]) -> int:
    """Levenshtein distance between two sequences (strings or token lists)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, item_a in enumerate(a, 1):
        current = [i]
        for j, item_b in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (item_a != item_b),
                )
            )
        previous = current
    return previous[-1]


def normalized_similarity(a: Sequence[Hashable], b: Sequence[Hashable]) -> float:
    """1 - edit distance / longest length; two empty sequences are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def fragment_ratio(fragment: Sequence[Hashable], whole: Sequence[Hashable]) -> float:
    """Share of ``fragment`` found, in order, inside ``whole``."""
    if not fragment:
        return 0.0
    matcher = SequenceMatcher(None, fragment, whole, autojunk=False)
    matched = sum(block.size for block in matcher.get_matching_blocks())
    return matched / len(fragment)
