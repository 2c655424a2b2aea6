"""Tests for the anchor-then-propagate tree matcher."""

from codetrail.matching import GreedyTreeMatcher, NodeMapping
from codetrail.models import SyntaxNode


def leaf(label, value="", line=1):
    return SyntaxNode(label, value, (), line, line)


def node(label, *children, value="", line=1):
    end = max((c.end_line for c in children), default=line)
    return SyntaxNode(label, value, tuple(children), line, end)


def test_identical_trees_fully_covered(build_model):
    """Test identical trees map every node."""
    a = build_model("def f(x):\n    return x + 1\n").tree
    b = build_model("def f(x):\n    return x + 1\n").tree

    mapping = GreedyTreeMatcher().match(a, b)

    assert mapping.coverage(a) == 1.0
    assert len(mapping) == a.size


def test_anchor_moves_with_code(build_model):
    """Test an unchanged function is found after code was inserted above it."""
    a = build_model("def g(y):\n    return y * 2\n").tree
    b = build_model("A = 1\nB = 2\n\n\ndef g(y):\n    return y * 2\n").tree

    mapping = GreedyTreeMatcher().match(a, b)
    function_a = a.children[0]

    counterpart = mapping.mapped(function_a)
    assert counterpart is not None
    assert counterpart.label == "FunctionDef"
    assert counterpart.start_line == 5
    assert mapping.coverage(function_a) == 1.0


def test_propagation_matches_changed_parent():
    """Test a parent with a changed child is matched through its mapped children."""
    def shared():
        return node("Call", leaf("Name", "print"), leaf("Constant", "'x'"))

    a = node("Block", node("Expr", shared()), node("Expr", shared()), leaf("Pass"))
    b = node("Block", node("Expr", shared()), node("Expr", shared()), leaf("Break"))

    mapping = GreedyTreeMatcher(min_anchor_height=2).match(a, b)

    assert mapping.mapped(a) is b
    assert mapping.mapped(a.children[2]) is None
    assert 0.5 < mapping.coverage(a) < 1.0


def test_partial_coverage_for_body_change(build_model):
    a = build_model("def f(x):\n    y = x + 1\n    return y\n").tree
    b = build_model("def f(x):\n    y = x + 2\n    return y\n").tree

    mapping = GreedyTreeMatcher().match(a, b)

    assert 0.5 < mapping.coverage(a) < 1.0


def test_node_mapping_is_one_to_one():
    a, b = leaf("Name", "x"), leaf("Name", "x")
    mapping = NodeMapping()
    mapping.add(a, b)

    assert mapping.has_src(a)
    assert mapping.has_dst(b)
    assert not mapping.has_src(b)
    assert mapping.mapped(a) is b
    assert mapping.coverage(a) == 1.0
