"""Tests for the Python structural model builder."""

from unittest.mock import patch

import pytest

from codetrail.exceptions import ParseError
from codetrail.extraction import PythonModelBuilder
from codetrail.models import ElementKind

SOURCE = '''\
import os

LIMIT: int = 10


class Account(Base):
    """A bank account."""

    currency = "EUR"

    def __init__(self, owner: str, balance: float = 0.0) -> None:
        self.owner = owner
        self.balance: float = balance

    @property
    def label(self) -> str:
        return f"{self.owner}: {self.balance}"

    async def refresh(self, *args, **kwargs):
        total = 0
        for item in args:
            if item > LIMIT:
                total += item
        with open(os.devnull) as handle:
            handle.write("x")
        return total


def helper(a, b):
    x, y = a, b
    return x + y
'''


@pytest.fixture
def model(build_model):
    return build_model(SOURCE, "bank.py")


def names(model, kind):
    return [e.qualified_name for e in model.of_kind(kind)]


def test_classes_and_methods(model):
    """Test classes and methods are collected with qualified names."""
    assert names(model, ElementKind.CLASS) == ["Account"]
    assert names(model, ElementKind.METHOD) == [
        "Account.__init__",
        "Account.label",
        "Account.refresh",
        "helper",
    ]


def test_method_signature(model):
    """Test parameters, return annotation and modifiers are recorded."""
    init = model.find(lambda e: e.qualified_name == "Account.__init__")[0]
    assert init.signature.parameters == ("self", "owner: str", "balance: float")
    assert init.signature.return_type == "None"

    label = model.find(lambda e: e.qualified_name == "Account.label")[0]
    assert label.signature.modifiers == ("property",)

    refresh = model.find(lambda e: e.qualified_name == "Account.refresh")[0]
    assert refresh.signature.parameters == ("self", "*args", "**kwargs")
    assert refresh.signature.modifiers == ("async",)


def test_class_signature_lists_bases(model):
    account = model.of_kind(ElementKind.CLASS)[0]
    assert account.signature.parameters == ("Base",)
    assert account.range.start_line == 6


def test_attributes(model):
    """Test class-level and __init__ attributes become class attributes."""
    assert names(model, ElementKind.ATTRIBUTE) == [
        "Account.currency",
        "Account.owner",
        "Account.balance",
    ]
    balance = model.find(lambda e: e.qualified_name == "Account.balance")[0]
    assert balance.signature.return_type == "float"
    assert model.container_of(balance).name == "Account"


def test_variables(model):
    """Test module, method and tuple-unpacking variables are collected once per scope."""
    variables = names(model, ElementKind.VARIABLE)
    assert "LIMIT" in variables
    assert "Account.refresh.total" in variables
    assert "helper.x" in variables
    assert "helper.y" in variables
    # class-level assignments are attributes, self.x assignments are not variables
    assert "currency" not in variables
    assert not any(v.endswith(".owner") for v in variables)
    assert variables.count("Account.refresh.total") == 1


def test_blocks(model):
    """Test compound statements inside methods become blocks."""
    blocks = model.of_kind(ElementKind.BLOCK)
    assert [(b.block_type, b.range.start_line, b.range.end_line) for b in blocks] == [
        ("for", 21, 23),
        ("if", 22, 23),
        ("with", 24, 25),
    ]
    for_block = blocks[0]
    assert for_block.qualified_name == "Account.refresh/for"
    assert for_block.signature.header == "item in args"
    assert model.enclosing_method(for_block).qualified_name == "Account.refresh"
    # nested blocks hang directly off their method
    assert model.container_of(blocks[1]).name == "refresh"
    assert model.owner_of(blocks[1]).name == "refresh"
    assert for_block.range.contains(blocks[1].range)


def test_no_blocks_outside_methods(build_model):
    model = build_model("if True:\n    value = 1\n")
    assert model.of_kind(ElementKind.BLOCK) == []
    assert names(model, ElementKind.VARIABLE) == ["value"]


def test_rename_keeps_subtree_digest(build_model):
    """Test a renamed method with the same body has the same digest."""
    before = build_model("def compute(a):\n    return a * 2\n")
    after = build_model("def double(a):\n    return a * 2\n")
    assert before.elements[0].tree.digest == after.elements[0].tree.digest


def test_body_change_changes_digest(build_model):
    before = build_model("def compute(a):\n    return a * 2\n")
    after = build_model("def compute(a):\n    return a * 3\n")
    assert before.elements[0].tree.digest != after.elements[0].tree.digest


def test_digest_is_stable_across_builds(build_model):
    source = "def compute(a):\n    return a * 2\n"
    digest = build_model(source).elements[0].tree.digest

    assert digest == build_model(source).elements[0].tree.digest
    assert len(digest) == 32
    int(digest, 16)


def test_element_for_node(model):
    method = model.find(lambda e: e.qualified_name == "helper")[0]
    assert model.element_for_node(method.tree) is method
    assert model.element_for_node(model.tree) is None


def test_syntax_error_raises_parse_error():
    """Test invalid source raises ParseError with a line number."""
    builder = PythonModelBuilder()

    with pytest.raises(ParseError, match="broken.py") as exc_info:
        builder.build_model(b"def broken(:\n    pass\n", "broken.py")

    assert exc_info.value.line == 1


def test_invalid_encoding_raises_parse_error():
    builder = PythonModelBuilder()

    with pytest.raises(ParseError, match="UTF-8"):
        builder.build_model(b"x = '\xff'\n", "latin.py")


def test_long_expression_chain(build_model):
    """Test an expression nested deeper than the recursion limit is modelled."""
    chain = " + ".join(["1"] * 600)
    model = build_model(f"def total():\n    if True:\n        x = {chain}\n    return x\n")

    variable = model.of_kind(ElementKind.VARIABLE)[0]
    assert variable.qualified_name == "total.x"
    assert variable.tree.size > 1200
    assert names(model, ElementKind.BLOCK) == ["total/if"]


def test_parser_recursion_raises_parse_error():
    builder = PythonModelBuilder()

    with patch("codetrail.extraction.python_model.ast.parse", side_effect=RecursionError("too deep")):
        with pytest.raises(ParseError, match="too deeply nested"):
            builder.build_model(b"x = 1\n", "deep.py")
