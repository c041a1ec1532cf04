"""Django ORM detector."""

from __future__ import annotations

import ast
from typing import Optional

from ..model import OperationType
from .python_ast import (
    Link,
    ModuleVisitor,
    PythonOrmDetector,
    chain_name,
    constructed_entity,
    dotted_name,
    is_class_name,
)

MODEL_BASES = frozenset({"models.Model", "Model"})

MANAGER = "objects"

WRITE_METHODS = frozenset(
    {
        "create",
        "bulk_create",
        "update",
        "delete",
        "bulk_update",
        "get_or_create",
        "update_or_create",
    }
)


class DjangoVisitor(ModuleVisitor):
    def __init__(self, file_id: str):
        super().__init__(file_id)
        self.model_bases: set[str] = set(MODEL_BASES)

    def is_entity_class(self, node: ast.ClassDef) -> bool:
        bases = {dotted_name(b) for b in node.bases}
        if not bases & self.model_bases:
            return False
        # subclasses of this class are models too, abstract or not
        self.model_bases.add(node.name)
        return not _is_abstract(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        # @transaction.atomic without parentheses; the called form is a Call
        for decorator in node.decorator_list:
            if not isinstance(decorator, ast.Call) and self._is_atomic(dotted_name(decorator)):
                self.record_transaction("atomic", decorator)
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef

    def _is_atomic(self, name: Optional[str]) -> bool:
        if name == "transaction.atomic":
            return True
        return name == "atomic" and self.imported_names.get("atomic", "").startswith("django")

    def handle_chain(self, node: ast.Call, root: ast.expr, links: list[Link]) -> None:
        # User.objects.filter(...).first()
        if (
            isinstance(root, ast.Name)
            and is_class_name(root.id)
            and links
            and links[0] == (MANAGER, None)
            and len(links) > 1
        ):
            writes = any(name in WRITE_METHODS for name, _ in links)
            op_type = OperationType.WRITE if writes else OperationType.READ
            self.record(root.id, chain_name(links), op_type, node, links)
            return

        # User(name="x").save()
        entity = constructed_entity(root)
        if entity is not None and links and links[0][0] == "save":
            arguments = [(entity, root)] + links
            self.record(entity, chain_name(links), OperationType.WRITE, node, arguments)
            return

        # with transaction.atomic(): / @transaction.atomic(using="default")
        if isinstance(root, ast.Call) and self._is_atomic(dotted_name(root.func)) and not links:
            self.record_transaction("atomic", node, [("atomic", root)])
        elif isinstance(root, ast.Name) and links and links[0][1] is not None:
            if self._is_atomic(f"{root.id}.{links[0][0]}"):
                self.record_transaction(chain_name(links), node, links)


def _is_abstract(node: ast.ClassDef) -> bool:
    for stmt in node.body:
        if isinstance(stmt, ast.ClassDef) and stmt.name == "Meta":
            for inner in stmt.body:
                if (
                    isinstance(inner, ast.Assign)
                    and any(isinstance(t, ast.Name) and t.id == "abstract" for t in inner.targets)
                    and isinstance(inner.value, ast.Constant)
                    and inner.value.value is True
                ):
                    return True
    return False


class DjangoDetector(PythonOrmDetector):
    """Finds Django models and the manager queries, saves and transactions on them."""

    name = "django"
    visitor_class = DjangoVisitor
