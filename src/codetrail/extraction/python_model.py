"""Structural models of Python source files built with the ``ast`` module."""

import ast
from typing import Dict, List, Optional, Tuple

from codetrail.exceptions import ParseError
from codetrail.extraction.base import ModelBuilder
from codetrail.models.elements import (
    CodeElement,
    ElementKind,
    Signature,
    SourceRange,
    StructuralModel,
    SyntaxNode,
)

_BLOCK_TYPES = {
    ast.If: "if",
    ast.For: "for",
    ast.AsyncFor: "async for",
    ast.While: "while",
    ast.With: "with",
    ast.AsyncWith: "async with",
    ast.Try: "try",
}
if hasattr(ast, "TryStar"):
    _BLOCK_TYPES[ast.TryStar] = "try"
if hasattr(ast, "Match"):
    _BLOCK_TYPES[ast.Match] = "match"

# nodes whose children may be statements
_STATEMENT_HOLDERS = tuple(
    t for t in (ast.stmt, ast.excepthandler, getattr(ast, "match_case", None)) if t is not None
)


def _unparse(node: Optional[ast.AST]) -> Optional[str]:
    return ast.unparse(node) if node is not None else None


def _node_value(node: ast.AST) -> str:
    """Label value kept in the syntax tree.

    Declaration names are left out: a renamed declaration with an unchanged
    body keeps its subtree digest.
    """
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Constant):
        return repr(node.value)
    if isinstance(node, ast.arg):
        return node.arg
    if isinstance(node, ast.keyword):
        return node.arg or ""
    if isinstance(node, ast.alias):
        return node.name
    if isinstance(node, ast.ImportFrom):
        return node.module or ""
    if isinstance(node, (ast.Global, ast.Nonlocal)):
        return ",".join(node.names)
    return ""


def _convert(root: ast.AST, nodes: Dict[int, SyntaxNode], root_line: int = 0) -> SyntaxNode:
    """Convert an ast tree bottom-up, recording each syntax node by ast node id.

    Iterative, as long expression chains nest deeper than the recursion limit.
    """
    order: List[Tuple[ast.AST, int, List[ast.AST]]] = []
    stack = [(root, root_line)]
    while stack:
        node, parent_line = stack.pop()
        start = getattr(node, "lineno", parent_line) or parent_line
        children = [c for c in ast.iter_child_nodes(node) if not isinstance(c, ast.expr_context)]
        order.append((node, start, children))
        stack.extend((child, start) for child in children)

    # parents precede their descendants in ``order``
    for node, start, children in reversed(order):
        end = getattr(node, "end_lineno", start) or start
        nodes[id(node)] = SyntaxNode(
            type(node).__name__,
            _node_value(node),
            tuple(nodes[id(child)] for child in children),
            start,
            end,
        )
    return nodes[id(root)]


def _parameters(args: ast.arguments) -> Tuple[str, ...]:
    def render(arg: ast.arg, prefix: str = "") -> str:
        if arg.annotation is not None:
            return f"{prefix}{arg.arg}: {ast.unparse(arg.annotation)}"
        return f"{prefix}{arg.arg}"

    params = [render(a) for a in args.posonlyargs + args.args]
    if args.vararg is not None:
        params.append(render(args.vararg, "*"))
    params.extend(render(a) for a in args.kwonlyargs)
    if args.kwarg is not None:
        params.append(render(args.kwarg, "**"))
    return tuple(params)


def _block_header(node: ast.stmt) -> str:
    if isinstance(node, (ast.If, ast.While)):
        return ast.unparse(node.test)
    if isinstance(node, (ast.For, ast.AsyncFor)):
        return f"{ast.unparse(node.target)} in {ast.unparse(node.iter)}"
    if isinstance(node, (ast.With, ast.AsyncWith)):
        return ", ".join(ast.unparse(item) for item in node.items)
    if hasattr(ast, "Match") and isinstance(node, ast.Match):
        return ast.unparse(node.subject)
    # try statements are identified by their handlers
    handlers = getattr(node, "handlers", [])
    return ", ".join(_unparse(h.type) or "*" for h in handlers)


def _target_names(target: ast.expr) -> List[str]:
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        return [name for element in target.elts for name in _target_names(element)]
    if isinstance(target, ast.Starred):
        return _target_names(target.value)
    return []


def _assigned_names(node: ast.stmt) -> List[Tuple[str, Optional[str]]]:
    """(name, annotation) pairs bound by a plain or annotated assignment."""
    if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
        return [(node.target.id, ast.unparse(node.annotation))]
    if isinstance(node, ast.Assign):
        return [(name, None) for target in node.targets for name in _target_names(target)]
    return []


def _self_attributes(node: ast.stmt) -> List[Tuple[str, Optional[str]]]:
    """Attributes bound on ``self`` by an assignment statement."""
    targets: List[ast.expr] = []
    annotation = None
    if isinstance(node, ast.Assign):
        targets = list(node.targets)
    elif isinstance(node, ast.AnnAssign):
        targets = [node.target]
        annotation = ast.unparse(node.annotation)
    names = []
    for target in targets:
        if (
            isinstance(target, ast.Attribute)
            and isinstance(target.value, ast.Name)
            and target.value.id == "self"
        ):
            names.append((target.attr, annotation))
    return names


class _ElementCollector(ast.NodeVisitor):
    """Walks a module and records declarations in document order."""

    def __init__(self, nodes: Dict[int, SyntaxNode]) -> None:
        self.nodes = nodes
        self.elements: List[CodeElement] = []
        # (element index, kind) of the enclosing declarations
        self.scope: List[Tuple[int, ElementKind]] = []
        self.seen_variables: Dict[Tuple[Optional[int], str], int] = {}
        self.seen_attributes: Dict[Tuple[int, str], int] = {}

    def _prefix(self) -> str:
        for index, kind in reversed(self.scope):
            if kind in (ElementKind.CLASS, ElementKind.METHOD):
                return self.elements[index].qualified_name + "."
        return ""

    def _enclosing(self, *kinds: ElementKind) -> Optional[int]:
        for index, kind in reversed(self.scope):
            if kind in kinds:
                return index
        return None

    def _body_tokens(self, statements: List[ast.stmt]) -> Tuple[str, ...]:
        tokens: List[str] = []
        for statement in statements:
            tokens.extend(node.token() for node in self.nodes[id(statement)].preorder())
        return tuple(tokens)

    def _add(
        self,
        node: ast.AST,
        kind: ElementKind,
        name: str,
        qualified_name: str,
        container: Optional[int],
        signature: Signature,
        body: List[ast.stmt],
        block_type: Optional[str] = None,
    ) -> int:
        index = len(self.elements)
        tree = self.nodes[id(node)]
        self.elements.append(
            CodeElement(
                index=index,
                kind=kind,
                name=name,
                qualified_name=qualified_name,
                container=container,
                signature=signature,
                range=SourceRange(tree.start_line, tree.end_line),
                body_tokens=self._body_tokens(body),
                tree=tree,
                block_type=block_type,
            )
        )
        return index

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        signature = Signature(
            parameters=tuple(ast.unparse(base) for base in node.bases),
            modifiers=tuple(ast.unparse(d) for d in node.decorator_list),
        )
        index = self._add(
            node,
            ElementKind.CLASS,
            node.name,
            self._prefix() + node.name,
            self._enclosing(ElementKind.CLASS, ElementKind.METHOD),
            signature,
            node.body,
        )
        self.scope.append((index, ElementKind.CLASS))
        for statement in node.body:
            self._class_member(index, statement)
        self.scope.pop()

    def _class_member(self, class_index: int, statement: ast.stmt) -> None:
        if isinstance(statement, (ast.Assign, ast.AnnAssign)):
            for name, annotation in _assigned_names(statement):
                self._attribute(class_index, statement, name, annotation)
        self.visit(statement)

    def _attribute(self, class_index: int, node: ast.stmt, name: str, annotation: Optional[str]) -> None:
        key = (class_index, name)
        if key in self.seen_attributes:
            return
        qualified = f"{self.elements[class_index].qualified_name}.{name}"
        self.seen_attributes[key] = self._add(
            node,
            ElementKind.ATTRIBUTE,
            name,
            qualified,
            class_index,
            Signature(return_type=annotation),
            [node],
        )

    def _visit_function(self, node: ast.AST) -> None:
        modifiers = tuple(ast.unparse(d) for d in node.decorator_list)
        if isinstance(node, ast.AsyncFunctionDef):
            modifiers = ("async",) + modifiers
        signature = Signature(
            parameters=_parameters(node.args),
            return_type=_unparse(node.returns),
            modifiers=modifiers,
        )
        container = self._enclosing(ElementKind.CLASS, ElementKind.METHOD)
        index = self._add(
            node,
            ElementKind.METHOD,
            node.name,
            self._prefix() + node.name,
            container,
            signature,
            node.body,
        )
        in_class = container is not None and self.elements[container].kind == ElementKind.CLASS
        self.scope.append((index, ElementKind.METHOD))
        for statement in node.body:
            if in_class and node.name == "__init__":
                for name, annotation in _self_attributes(statement):
                    self._attribute(container, statement, name, annotation)
            self.visit(statement)
        self.scope.pop()

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function

    def _variable(self, node: ast.stmt) -> None:
        method = self._enclosing(ElementKind.CLASS, ElementKind.METHOD)
        if method is not None and self.elements[method].kind == ElementKind.CLASS:
            # class-level assignments are attributes
            return
        prefix = self.elements[method].qualified_name + "." if method is not None else ""
        for name, annotation in _assigned_names(node):
            key = (method, name)
            if key in self.seen_variables:
                continue
            self.seen_variables[key] = self._add(
                node,
                ElementKind.VARIABLE,
                name,
                prefix + name,
                method,
                Signature(return_type=annotation),
                [node],
            )

    def visit_Assign(self, node: ast.Assign) -> None:
        self._variable(node)
        self.generic_visit(node)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self._variable(node)
        self.generic_visit(node)

    def _visit_statements(self, node: ast.AST) -> None:
        # declarations never live inside expressions
        for child in ast.iter_child_nodes(node):
            if isinstance(child, _STATEMENT_HOLDERS):
                self.visit(child)

    def generic_visit(self, node: ast.AST) -> None:
        block_type = _BLOCK_TYPES.get(type(node))
        method = self._enclosing(ElementKind.METHOD)
        if block_type is None or method is None:
            self._visit_statements(node)
            return
        qualified = f"{self.elements[method].qualified_name}/{block_type}"
        index = self._add(
            node,
            ElementKind.BLOCK,
            block_type,
            qualified,
            method,
            Signature(header=_block_header(node)),
            [node],
            block_type=block_type,
        )
        self.scope.append((index, ElementKind.BLOCK))
        self._visit_statements(node)
        self.scope.pop()


class PythonModelBuilder(ModelBuilder):
    """Builds structural models of Python modules."""

    def build_model(self, source: bytes, path: str) -> StructuralModel:
        """Parse ``source`` and collect its classes, methods, attributes,
        variables and blocks.

        Args:
            source: Raw file content
            path: Repository-relative path, used in errors and in the model

        Returns:
            StructuralModel of the file

        Raises:
            ParseError: If the content is not valid UTF-8 Python or nests
                too deeply to be analysed
        """
        try:
            text = source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(path, f"not valid UTF-8 ({e.reason})") from e
        try:
            module = ast.parse(text, filename=path)
        except SyntaxError as e:
            raise ParseError(path, e.msg or "invalid syntax", e.lineno) from e
        except ValueError as e:
            # null bytes and similar
            raise ParseError(path, str(e)) from e
        except (RecursionError, MemoryError) as e:
            raise ParseError(path, f"too deeply nested ({type(e).__name__})") from e

        nodes: Dict[int, SyntaxNode] = {}
        tree = _convert(module, nodes, 1)
        collector = _ElementCollector(nodes)
        try:
            for statement in module.body:
                collector.visit(statement)
        except RecursionError as e:
            # ast.unparse of a deeply nested header or annotation
            raise ParseError(path, "too deeply nested (RecursionError)") from e
        return StructuralModel(path=path, elements=tuple(collector.elements), tree=tree)
