"""Tests for similarity measures."""

import pytest

from codetrail.matching.similarity import edit_distance, fragment_ratio, normalized_similarity


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("", "", 0),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("same", "same", 0),
        (["self", "a"], ["self", "a", "b"], 1),
    ],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected
    assert edit_distance(b, a) == expected


def test_normalized_similarity_bounds():
    """Test similarity is 1 for equal inputs and 0 for disjoint ones."""
    assert normalized_similarity("", "") == 1.0
    assert normalized_similarity("abc", "abc") == 1.0
    assert normalized_similarity("abc", "xyz") == 0.0
    assert normalized_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_fragment_ratio():
    whole = ["a", "b", "c", "d", "e"]
    assert fragment_ratio(["b", "c", "d"], whole) == 1.0
    assert fragment_ratio(["b", "x"], whole) == 0.5
    assert fragment_ratio([], whole) == 0.0
