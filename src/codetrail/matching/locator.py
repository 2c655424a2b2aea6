"""Candidate lookup for an element in an earlier revision.

Lookup runs through tiers ordered from cheapest and most specific to most
expensive. ``candidates_for`` stops at the first tier that yields anything;
``candidate_tiers`` lets a caller move on when a tier's candidates are all
rejected. Every rule is a plain function of the element kind so all
matching rules live in one place.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from codetrail.matching.tree_matcher import NodeMapping, TreeMatcher
from codetrail.models.elements import CodeElement, ElementKind, StructuralModel
from codetrail.models.locators import (
    AttributeLocator,
    BlockLocator,
    ClassLocator,
    ElementLocator,
    MethodLocator,
    VariableLocator,
)

TIER_EXACT = 1
TIER_NAME = 2
TIER_CONTAINER = 3
TIER_CONTAINMENT = 4
TIER_AST = 5


@dataclass
class LocatorResult:
    """Candidates found for one target and the tier that found them."""

    tier: Optional[int] = None
    candidates: List[CodeElement] = field(default_factory=list)
    mapping: Optional[NodeMapping] = None

    def __bool__(self) -> bool:
        return bool(self.candidates)


def _same_kind(target: CodeElement) -> Callable[[CodeElement], bool]:
    def predicate(element: CodeElement) -> bool:
        if element.kind != target.kind:
            return False
        return target.kind != ElementKind.BLOCK or element.block_type == target.block_type

    return predicate


def _container_compatible(
    target: CodeElement,
    later: StructuralModel,
    candidate: CodeElement,
    earlier: StructuralModel,
) -> bool:
    """The candidate's container is the target's container, possibly renamed."""
    if target.kind in (ElementKind.BLOCK, ElementKind.VARIABLE):
        target_method = later.enclosing_method(target)
        candidate_method = earlier.enclosing_method(candidate)
        if target_method is None or candidate_method is None:
            return target_method is None and candidate_method is None
        return target_method.name == candidate_method.name

    target_container = later.container_of(target)
    candidate_container = earlier.container_of(candidate)
    if target_container is None or candidate_container is None:
        return target_container is None and candidate_container is None
    if target_container.kind != candidate_container.kind:
        return False
    if target_container.qualified_name == candidate_container.qualified_name:
        return True
    # a differently named container only qualifies if it no longer exists
    return not later.has_declaration(candidate_container.kind, candidate_container.qualified_name)


def candidates_for(
    target: CodeElement,
    later: StructuralModel,
    earlier: StructuralModel,
    matcher: Optional[TreeMatcher] = None,
    max_ast_candidates: int = 3,
) -> LocatorResult:
    """Find elements of ``earlier`` that may be the earlier version of ``target``.

    Args:
        target: Element of the later revision
        later: Model the target belongs to
        earlier: Model of the earlier revision
        matcher: Tree matcher for the whole-file comparison tier, skipped if None
        max_ast_candidates: Candidates kept from the whole-file comparison

    Returns:
        LocatorResult of the first tier with candidates, empty when the
        element may have been introduced
    """
    return next(candidate_tiers(target, later, earlier, matcher, max_ast_candidates), LocatorResult())


def candidate_tiers(
    target: CodeElement,
    later: StructuralModel,
    earlier: StructuralModel,
    matcher: Optional[TreeMatcher] = None,
    max_ast_candidates: int = 3,
) -> Iterator[LocatorResult]:
    """Yield every tier that has candidates, cheapest first.

    Tiers are computed lazily so callers that accept the first one never pay
    for the whole-file comparison.
    """
    same_kind = earlier.find(_same_kind(target))
    if not same_kind:
        return

    exact = [
        e for e in same_kind
        if e.qualified_name == target.qualified_name and e.signature == target.signature
    ]
    if exact:
        yield LocatorResult(TIER_EXACT, exact)

    named = [e for e in same_kind if e.qualified_name == target.qualified_name]
    if named:
        yield LocatorResult(TIER_NAME, named)

    contained = [
        e for e in same_kind
        if e.name == target.name and _container_compatible(target, later, e, earlier)
    ]
    if contained:
        yield LocatorResult(TIER_CONTAINER, contained)

    overlapping = [e for e in same_kind if e.range.overlaps_wholly(target.range)]
    if overlapping:
        yield LocatorResult(TIER_CONTAINMENT, overlapping)

    if matcher is None:
        return
    found = _whole_file_candidates(target, later, earlier, same_kind, matcher, max_ast_candidates)
    if found:
        yield found


def _whole_file_candidates(
    target: CodeElement,
    later: StructuralModel,
    earlier: StructuralModel,
    same_kind: List[CodeElement],
    matcher: TreeMatcher,
    limit: int,
) -> LocatorResult:
    mapping = matcher.match(later.tree, earlier.tree)
    mapped = set()
    for node in target.tree.preorder():
        counterpart = mapping.mapped(node)
        if counterpart is not None:
            mapped.add(id(counterpart))
    if not mapped:
        return LocatorResult(mapping=mapping)

    counted = []
    for element in same_kind:
        count = sum(1 for node in element.tree.preorder() if id(node) in mapped)
        if count:
            counted.append((-count, element.index, element))
    counted.sort(key=lambda item: (item[0], item[1]))
    candidates = [element for _, _, element in counted[:limit]]
    return LocatorResult(TIER_AST if candidates else None, candidates, mapping)


def _innermost(elements: List[CodeElement]) -> Optional[CodeElement]:
    if not elements:
        return None
    return min(elements, key=lambda e: (e.range.end_line - e.range.start_line, e.index))


def _method_at(model: StructuralModel, name: str, line: int) -> Optional[CodeElement]:
    return _innermost(
        model.find(
            lambda e: e.kind == ElementKind.METHOD
            and e.name == name
            and e.range.start_line <= line <= e.range.end_line
        )
    )


def find_seed(locator: ElementLocator, model: StructuralModel) -> Optional[CodeElement]:
    """Element of ``model`` described by a tracker's locator fields."""
    if isinstance(locator, ClassLocator):
        matches = model.find(
            lambda e: e.kind == ElementKind.CLASS
            and locator.class_name in (e.name, e.qualified_name)
            and (locator.line is None or e.range.start_line <= locator.line <= e.range.end_line)
        )
        return _innermost(matches) if locator.line is not None else (matches[0] if matches else None)

    if isinstance(locator, MethodLocator):
        return _method_at(model, locator.method_name, locator.method_line)

    if isinstance(locator, AttributeLocator):
        return _innermost(
            model.find(
                lambda e: e.kind == ElementKind.ATTRIBUTE
                and e.name == locator.attribute_name
                and e.range.start_line <= locator.attribute_line <= e.range.end_line
            )
        )

    if isinstance(locator, VariableLocator):
        container = None
        if locator.method_name is not None:
            method = _method_at(model, locator.method_name, locator.method_line)
            if method is None:
                return None
            container = method.index
        return _innermost(
            model.find(
                lambda e: e.kind == ElementKind.VARIABLE
                and e.name == locator.variable_name
                and e.container == container
                and e.range.start_line <= locator.variable_line <= e.range.end_line
            )
        )

    if isinstance(locator, BlockLocator):
        method = _method_at(model, locator.method_name, locator.method_line)
        if method is None:
            return None
        for element in model.of_kind(ElementKind.BLOCK):
            if (
                element.block_type == locator.block_type
                and element.range.start_line == locator.start_line
                and element.range.end_line == locator.end_line
                and model.enclosing_method(element) is method
            ):
                return element
        return None

    raise TypeError(f"Unsupported locator: {type(locator).__name__}")
