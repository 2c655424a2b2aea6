"""Structural model of one source file at one commit.

A model is a flat arena of ``CodeElement`` records addressed by integer
index. Containment is expressed through the ``container`` index, never by
object references, so a model can be shared freely between threads once it
has been built.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Tuple


class ElementKind(str, Enum):
    """Kinds of code elements that can be tracked."""

    CLASS = "class"
    METHOD = "method"
    ATTRIBUTE = "attribute"
    VARIABLE = "variable"
    BLOCK = "block"


def _subtree_digest(label: str, value: str, children: Tuple["SyntaxNode", ...]) -> str:
    hasher = hashlib.blake2b(digest_size=16)
    hasher.update(f"{label}\0{value}\0".encode("utf-8", "surrogatepass"))
    for child in children:
        hasher.update(child.digest.encode("ascii"))
    return hasher.hexdigest()


class SyntaxNode:
    """Immutable labelled tree node used for AST comparison.

    ``digest`` identifies the whole subtree (label, value and children), so
    two isomorphic subtrees compare equal on it regardless of position.
    Identity, not structure, is used for hashing so mappings can be keyed by
    node.
    """

    __slots__ = ("label", "value", "children", "start_line", "end_line", "digest", "size", "height")

    def __init__(
        self,
        label: str,
        value: str = "",
        children: Tuple["SyntaxNode", ...] = (),
        start_line: int = 0,
        end_line: int = 0,
    ) -> None:
        self.label = label
        self.value = value
        self.children = children
        self.start_line = start_line
        self.end_line = end_line
        self.digest = _subtree_digest(label, value, children)
        self.size = 1 + sum(child.size for child in children)
        self.height = 1 + max((child.height for child in children), default=0)

    def preorder(self) -> Iterator["SyntaxNode"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def postorder(self) -> Iterator["SyntaxNode"]:
        stack: List[Tuple["SyntaxNode", bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))

    def token(self) -> str:
        return f"{self.label}:{self.value}" if self.value else self.label

    def __repr__(self) -> str:
        return f"SyntaxNode({self.token()!r}, lines={self.start_line}-{self.end_line}, size={self.size})"


@dataclass(frozen=True)
class SourceRange:
    """Inclusive, 1-based line range."""

    start_line: int
    end_line: int

    def contains(self, other: "SourceRange") -> bool:
        return self.start_line <= other.start_line and other.end_line <= self.end_line

    def overlaps_wholly(self, other: "SourceRange") -> bool:
        """True if either range wholly contains the other."""
        return self.contains(other) or other.contains(self)

    def delta(self, other: "SourceRange") -> int:
        return abs(self.start_line - other.start_line) + abs(self.end_line - other.end_line)

    def __str__(self) -> str:
        return f"{self.start_line}-{self.end_line}"


@dataclass(frozen=True)
class Signature:
    """Declared shape of an element.

    Methods fill ``parameters``, ``return_type`` and ``modifiers``; classes
    list their bases as parameters; attributes and variables carry their
    annotation as ``return_type``; blocks carry their header expression.
    """

    parameters: Tuple[str, ...] = ()
    return_type: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    header: Optional[str] = None

    def tokens(self) -> List[str]:
        tokens = list(self.parameters)
        if self.return_type is not None:
            tokens.append(f"->{self.return_type}")
        tokens.extend(f"@{modifier}" for modifier in self.modifiers)
        if self.header is not None:
            tokens.append(f"?{self.header}")
        return tokens

    def text(self) -> str:
        if self.header is not None:
            return self.header
        text = f"({', '.join(self.parameters)})"
        if self.return_type is not None:
            text += f" -> {self.return_type}"
        if self.modifiers:
            text = " ".join(f"@{m}" for m in self.modifiers) + " " + text
        return text


@dataclass(frozen=True)
class CodeElement:
    """One declared element of a structural model."""

    index: int
    kind: ElementKind
    name: str
    qualified_name: str
    container: Optional[int]
    signature: Signature
    range: SourceRange
    body_tokens: Tuple[str, ...] = field(compare=False)
    tree: SyntaxNode = field(compare=False, repr=False)
    block_type: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Qualified name plus signature, the cheapest identity across revisions."""
        return f"{self.qualified_name}{self.signature.text()}"


@dataclass(frozen=True)
class StructuralModel:
    """All declared elements of ``path`` at one revision."""

    path: str
    elements: Tuple[CodeElement, ...]
    tree: SyntaxNode = field(repr=False)
    _by_node: Dict[int, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for element in self.elements:
            self._by_node[id(element.tree)] = element.index

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[CodeElement]:
        return iter(self.elements)

    def element(self, index: int) -> CodeElement:
        return self.elements[index]

    def of_kind(self, kind: ElementKind) -> List[CodeElement]:
        return [element for element in self.elements if element.kind == kind]

    def find(self, predicate: Callable[[CodeElement], bool]) -> List[CodeElement]:
        return [element for element in self.elements if predicate(element)]

    def element_for_node(self, node: SyntaxNode) -> Optional[CodeElement]:
        """Element whose subtree is rooted at ``node``, if any."""
        index = self._by_node.get(id(node))
        return self.elements[index] if index is not None else None

    def container_of(self, element: CodeElement) -> Optional[CodeElement]:
        if element.container is None:
            return None
        return self.elements[element.container]

    def container_name(self, element: CodeElement) -> str:
        container = self.container_of(element)
        return container.qualified_name if container is not None else ""

    def enclosing_method(self, element: CodeElement) -> Optional[CodeElement]:
        """Nearest enclosing method, or None for top-level elements."""
        current = self.container_of(element)
        while current is not None and current.kind != ElementKind.METHOD:
            current = self.container_of(current)
        return current

    def owner_of(self, element: CodeElement) -> CodeElement:
        """Declaration that owns ``element``'s code: the enclosing method for
        blocks and variables, the element itself otherwise."""
        if element.kind in (ElementKind.BLOCK, ElementKind.VARIABLE):
            method = self.enclosing_method(element)
            if method is not None:
                return method
        return element

    def has_declaration(self, kind: ElementKind, qualified_name: str) -> bool:
        return any(e.kind == kind and e.qualified_name == qualified_name for e in self.elements)
