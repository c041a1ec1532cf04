"""Shared ``ast`` machinery for Python ORM detectors.

ORM code is mostly method chains::

    session.query(User).filter(User.age > 30).order_by(User.name).all()

A chain is unwound once, from its outermost call, into a root expression and
the ordered links that follow it. Subclass visitors decide whether a chain is
an operation and on which entity. Arguments of the chain's calls are then
visited on their own, so sub-queries nested inside a filter are found too.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Optional

from ..exceptions import ParsingError
from ..file_ops import read_text_file
from ..model import OperationType, Selection
from .base import ArgumentFinding, Detector, Finding, OperationFinding

TRANSACTION_ENTITY = "[transaction]"

# Calls whose positional arguments are predicates worth recording
FILTER_METHODS = frozenset({"filter", "where", "having", "exclude", "get"})

# Joins and eager loads, recorded as ``method(expr)``
JOIN_METHODS = frozenset(
    {
        "join",
        "outerjoin",
        "joinedload",
        "selectinload",
        "subqueryload",
        "contains_eager",
        "select_related",
        "prefetch_related",
    }
)

Link = tuple[str, Optional[ast.Call]]


def selection_of(file_id: str, node: ast.AST) -> Selection:
    line = getattr(node, "lineno", 1)
    column = getattr(node, "col_offset", 0)
    return Selection(
        file_path=file_id,
        from_line=line,
        from_column=column,
        to_line=getattr(node, "end_lineno", None) or line,
        to_column=getattr(node, "end_col_offset", None) or column,
    )


def call_chain(node: ast.expr) -> tuple[ast.expr, list[Link]]:
    """Unwind ``a.b(x).c.d(y)`` into ``a`` and ``[("b", call), ("c", None), ("d", call)]``.

    Attribute accesses that are not called carry ``None`` instead of a call.
    """
    links: list[Link] = []
    cursor = node
    while True:
        if isinstance(cursor, ast.Call) and isinstance(cursor.func, ast.Attribute):
            links.append((cursor.func.attr, cursor))
            cursor = cursor.func.value
        elif isinstance(cursor, ast.Attribute):
            links.append((cursor.attr, None))
            cursor = cursor.value
        else:
            break
    links.reverse()
    return cursor, links


def dotted_name(node: ast.expr) -> Optional[str]:
    parts: list[str] = []
    cursor = node
    while isinstance(cursor, ast.Attribute):
        parts.append(cursor.attr)
        cursor = cursor.value
    if not isinstance(cursor, ast.Name):
        return None
    parts.append(cursor.id)
    return ".".join(reversed(parts))


def is_class_name(name: str) -> bool:
    return name[:1].isupper() and not name.isupper()


def entity_reference(node: ast.expr) -> Optional[str]:
    """Entity named by an expression: ``User``, ``models.User`` or ``User.id``."""
    if isinstance(node, ast.Name):
        return node.id if is_class_name(node.id) else None
    if isinstance(node, ast.Attribute):
        if is_class_name(node.attr):
            return node.attr
        return entity_reference(node.value)
    return None


def constructed_entity(node: ast.expr) -> Optional[str]:
    """Entity instantiated by ``User(...)`` or ``models.User(...)``."""
    if isinstance(node, ast.Call):
        if isinstance(node.func, ast.Name) and is_class_name(node.func.id):
            return node.func.id
        if isinstance(node.func, ast.Attribute) and is_class_name(node.func.attr):
            return node.func.attr
    return None


def chain_name(links: list[Link]) -> str:
    return ".".join(name for name, _ in links)


class ModuleVisitor(ast.NodeVisitor):
    """Collects findings for one module. Subclasses supply the ORM rules."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        self.findings: list[Finding] = []
        self.module_aliases: dict[str, str] = {}
        self.imported_names: dict[str, str] = {}
        self._transaction_declared = False

    # -- hooks ------------------------------------------------------------

    def is_entity_class(self, node: ast.ClassDef) -> bool:
        return False

    def handle_chain(self, node: ast.Call, root: ast.expr, links: list[Link]) -> None:
        pass

    # -- recording --------------------------------------------------------

    def declare(self, name: str, node: Optional[ast.AST] = None) -> None:
        selection = selection_of(self.file_id, node) if node is not None else None
        self.findings.append(Finding(name, None, selection))

    def record(
        self,
        entity: str,
        name: str,
        op_type: OperationType,
        node: ast.AST,
        links: list[Link],
    ) -> None:
        selection = selection_of(self.file_id, node)
        operation = OperationFinding(
            name=name,
            type=op_type,
            arguments=tuple(self.arguments(links)),
            selection=selection,
        )
        self.findings.append(Finding(entity, operation, selection))

    def record_transaction(
        self, name: str, node: ast.AST, links: Optional[list[Link]] = None
    ) -> None:
        if not self._transaction_declared:
            self.declare(TRANSACTION_ENTITY)
            self._transaction_declared = True
        self.record(TRANSACTION_ENTITY, name, OperationType.TRANSACTION, node, links or [])

    def arguments(self, links: list[Link]) -> list[ArgumentFinding]:
        found: list[ArgumentFinding] = []
        for method, call in links:
            if call is None:
                continue
            for keyword in call.keywords:
                if keyword.arg:
                    found.append(ArgumentFinding(keyword.arg, selection_of(self.file_id, keyword)))
            if method in JOIN_METHODS:
                rendered = ", ".join(ast.unparse(a) for a in call.args)
                found.append(
                    ArgumentFinding(f"{method}({rendered})", selection_of(self.file_id, call))
                )
            elif method == "options":
                for arg in call.args:
                    if isinstance(arg, ast.Call) and self._callee(arg) in JOIN_METHODS:
                        found.append(
                            ArgumentFinding(ast.unparse(arg), selection_of(self.file_id, arg))
                        )
            elif method in FILTER_METHODS:
                for arg in call.args:
                    found.append(ArgumentFinding(ast.unparse(arg), selection_of(self.file_id, arg)))
        return found

    @staticmethod
    def _callee(call: ast.Call) -> Optional[str]:
        if isinstance(call.func, ast.Name):
            return call.func.id
        if isinstance(call.func, ast.Attribute):
            return call.func.attr
        return None

    # -- traversal --------------------------------------------------------

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.module_aliases[alias.asname] = alias.name
            else:
                head = alias.name.split(".")[0]
                self.module_aliases[head] = head

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = node.module or ""
        for alias in node.names:
            self.imported_names[alias.asname or alias.name] = f"{module}.{alias.name}"

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        if self.is_entity_class(node):
            self.declare(node.name, node)
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        root, links = call_chain(node)
        self.handle_chain(node, root, links)

        # Only the outermost call of a chain is an operation; its inner
        # calls are links, but their arguments may hold further chains.
        calls = [call for _, call in links if call is not None]
        if isinstance(root, ast.Call):
            calls.insert(0, root)
        else:
            self.visit(root)
        for call in calls:
            for arg in call.args:
                self.visit(arg)
            for keyword in call.keywords:
                self.visit(keyword.value)


class PythonOrmDetector(Detector):
    """Detector for one Python ORM, parameterized by its visitor class."""

    visitor_class: type[ModuleVisitor] = ModuleVisitor

    def detect_file(self, file_id: str) -> list[Finding]:
        path = self.root / file_id
        source = read_text_file(path, max_bytes=self.max_file_size)
        try:
            tree = ast.parse(source, filename=str(path))
        except (SyntaxError, ValueError) as e:
            raise ParsingError(Path(file_id), str(e))

        visitor = self.visitor_class(file_id)
        visitor.visit(tree)
        return visitor.findings
