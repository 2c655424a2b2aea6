"""Tests for candidate scoring and change classification."""

import pytest

from codetrail.matching import (
    CandidateScorer,
    ChangeClassifier,
    GreedyTreeMatcher,
    candidates_for,
    label_change,
)
from codetrail.models import ChangeKind, ElementKind, MatchingConfig

BEFORE = """\
class Cart:
    def total(self, items):
        amount = 0
        for item in items:
            amount += item.price
        return amount
"""


@pytest.fixture
def config():
    return MatchingConfig()


@pytest.fixture
def classifier(config):
    return ChangeClassifier(CandidateScorer(config, GreedyTreeMatcher()))


def element(model, qualified_name, kind=ElementKind.METHOD):
    return model.find(lambda e: e.kind == kind and e.qualified_name == qualified_name)[0]


def classify(classifier, later, earlier, qualified_name, kind=ElementKind.METHOD):
    target = element(later, qualified_name, kind)
    found = candidates_for(target, later, earlier, classifier.scorer.matcher)
    return classifier.classify(target, later, found.candidates, earlier)


def test_unchanged(build_model, classifier):
    result = classify(classifier, build_model(BEFORE), build_model(BEFORE), "Cart.total")

    assert result.kind == ChangeKind.UNCHANGED
    assert result.score == pytest.approx(1.0)


def test_body_change(build_model, classifier):
    later = build_model(BEFORE.replace("item.price", "item.price * item.quantity"))

    result = classify(classifier, later, build_model(BEFORE), "Cart.total")

    assert result.kind == ChangeKind.BODY_CHANGE
    assert 0.5 <= result.score < 1.0


def test_rename(build_model, classifier):
    """Test a renamed method with an identical body is a rename."""
    later = build_model(BEFORE.replace("def total(", "def subtotal("))

    result = classify(classifier, later, build_model(BEFORE), "Cart.subtotal")

    assert result.kind == ChangeKind.RENAME
    assert result.element.qualified_name == "Cart.total"
    assert result.chosen.coverage == 1.0


def test_signature_change(build_model, classifier):
    later = build_model(BEFORE.replace("def total(self, items)", "def total(self, items, discount=0)"))

    result = classify(classifier, later, build_model(BEFORE), "Cart.total")

    assert result.kind == ChangeKind.SIGNATURE_CHANGE


def test_container_change(build_model, classifier):
    """Test a method of a renamed class is a container change, not a rename."""
    later = build_model(BEFORE.replace("class Cart", "class Basket"))

    result = classify(classifier, later, build_model(BEFORE), "Basket.total")

    assert result.kind == ChangeKind.CONTAINER_CHANGE


def test_extract_method(build_model, classifier):
    """Test a new method made of an existing method's code is an extraction."""
    later = build_model(
        "class Cart:\n"
        "    def total(self, items):\n"
        "        return self._sum(items)\n\n"
        "    def unused(self):\n"
        "        pass\n\n"
        "    def _sum(self, items):\n"
        "        amount = 0\n"
        "        for item in items:\n"
        "            amount += item.price\n"
        "        return amount\n"
    )

    result = classify(classifier, later, build_model(BEFORE), "Cart._sum")

    assert result.kind == ChangeKind.EXTRACT
    assert result.element.qualified_name == "Cart.total"


def test_extract_block(build_model, classifier):
    """Test a loop moved into a new method is extracted from the old one."""
    later = build_model(
        "class Cart:\n"
        "    def total(self, items):\n"
        "        return self._sum(items)\n\n"
        "    def unused(self):\n"
        "        pass\n\n"
        "    def _sum(self, items):\n"
        "        amount = 0\n"
        "        for item in items:\n"
        "            amount += item.price\n"
        "        return amount\n"
    )

    result = classify(classifier, later, build_model(BEFORE), "Cart._sum/for", ElementKind.BLOCK)

    assert result.kind == ChangeKind.EXTRACT
    assert result.element.qualified_name == "Cart.total/for"


def test_inline_block(build_model, classifier):
    """Test a loop whose method was removed and merged into the caller is inlined."""
    earlier = build_model(
        "class Cart:\n"
        "    def total(self, items):\n"
        "        return self._sum(items)\n\n"
        "    def unused(self):\n"
        "        pass\n\n"
        "    def _sum(self, items):\n"
        "        amount = 0\n"
        "        for item in items:\n"
        "            amount += item.price\n"
        "        return amount\n"
    )

    result = classify(classifier, build_model(BEFORE), earlier, "Cart.total/for", ElementKind.BLOCK)

    assert result.kind == ChangeKind.INLINE


def test_nothing_above_threshold_is_introduced(build_model, classifier):
    later = build_model("class Cart:\n    def total(self, items):\n        return len(items)\n")
    earlier = build_model("class Cart:\n    def clear(self):\n        self.items = []\n        self.count = 0\n")

    result = classify(classifier, later, earlier, "Cart.total")

    assert result.chosen is None
    assert result.kind == ChangeKind.INTRODUCED


def test_threshold_is_respected(build_model):
    """Test a higher threshold rejects a candidate a lower one accepts."""
    later = build_model(BEFORE.replace("def total(", "def subtotal("))
    earlier = build_model(BEFORE)
    lenient = ChangeClassifier(CandidateScorer(MatchingConfig(threshold=0.5), GreedyTreeMatcher()))
    strict = ChangeClassifier(CandidateScorer(MatchingConfig(threshold=0.99), GreedyTreeMatcher()))

    assert classify(lenient, later, earlier, "Cart.subtotal").chosen is not None
    assert classify(strict, later, earlier, "Cart.subtotal").chosen is None


def test_ties_break_on_range_delta(build_model, config):
    """Test equally scored candidates resolve to the closest one."""
    earlier = build_model(
        "def a():\n    return 1\n\n\n"
        "def a():\n    return 1\n"
    )
    later = build_model("def a():\n    return 1\n")
    scorer = CandidateScorer(config, GreedyTreeMatcher())
    target = later.elements[0]

    scored = scorer.score_all(target, later, earlier.of_kind(ElementKind.METHOD), earlier)
    chosen = scorer.select(scored)

    assert scored[0].score == scored[1].score
    assert chosen.element.range.start_line == 1


def test_label_change_prefers_container_over_rename(build_model, config):
    earlier = build_model(BEFORE)
    later = build_model(BEFORE.replace("class Cart", "class Basket").replace("def total(", "def subtotal("))

    kind = label_change(
        element(later, "Basket.subtotal"),
        later,
        element(earlier, "Cart.total"),
        earlier,
        config,
    )

    assert kind == ChangeKind.CONTAINER_CHANGE


SPLIT = """\
class Cart:
    def total(self, items):
        return self._sum(items)

    def _sum(self, items):
        amount = 0
        for item in items:
            amount += item.price
        return amount
"""


def test_inline_method(build_model, config):
    """Test a removed method whose code moved into an existing one is inlined."""
    earlier = build_model(SPLIT)
    later = build_model(BEFORE)

    kind = label_change(element(later, "Cart.total"), later, element(earlier, "Cart._sum"), earlier, config)

    assert kind == ChangeKind.INLINE


def test_new_method_around_surviving_method_is_not_inline(build_model, config):
    earlier = build_model(SPLIT)
    later = build_model(
        SPLIT
        + "\n"
        + "    def taxed(self, items, rate):\n"
        + "        amount = 0\n"
        + "        for item in items:\n"
        + "            amount += item.price\n"
        + "        tax = amount * rate\n"
        + "        return amount + tax\n"
    )

    kind = label_change(element(later, "Cart.taxed"), later, element(earlier, "Cart._sum"), earlier, config)

    assert kind == ChangeKind.RENAME
