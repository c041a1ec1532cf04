"""SQLAlchemy detector (classic Query API, 2.0-style constructs, Flask-SQLAlchemy)."""

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
    entity_reference,
)

DECLARATIVE_BASES = frozenset({"Base", "Model", "db.Model"})
BASE_FACTORIES = frozenset({"declarative_base", "DeclarativeBase", "DeclarativeBaseNoMeta"})

CONSTRUCTS = {
    "select": OperationType.READ,
    "update": OperationType.WRITE,
    "insert": OperationType.WRITE,
    "delete": OperationType.WRITE,
}

SESSION_WRITES = frozenset({"add", "merge", "delete"})
SESSION_TRANSACTIONS = frozenset({"begin", "begin_nested"})


def _is_session_like(receiver: ast.expr) -> bool:
    # session, db.session, self.session, Session(), get_session()
    text = ast.unparse(receiver).rsplit(".", 1)[-1]
    return "session" in text.lower()


class SqlAlchemyVisitor(ModuleVisitor):
    def __init__(self, file_id: str):
        super().__init__(file_id)
        self.base_names: set[str] = set(DECLARATIVE_BASES)

    # -- entities ---------------------------------------------------------

    def visit_Assign(self, node: ast.Assign) -> None:
        # Base = declarative_base()
        if isinstance(node.value, ast.Call) and dotted_name(node.value.func) in BASE_FACTORIES:
            for target in node.targets:
                if isinstance(target, ast.Name):
                    self.base_names.add(target.id)
        self.generic_visit(node)

    def is_entity_class(self, node: ast.ClassDef) -> bool:
        bases = {dotted_name(b) for b in node.bases}
        if bases & BASE_FACTORIES:
            # class Base(DeclarativeBase): the registry, not a table
            self.base_names.add(node.name)
            return False

        assigned = set()
        for stmt in node.body:
            if isinstance(stmt, ast.Assign):
                assigned.update(t.id for t in stmt.targets if isinstance(t, ast.Name))
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                assigned.add(stmt.target.id)

        if "__tablename__" in assigned or "__table__" in assigned:
            return True
        if "__abstract__" in assigned:
            self.base_names.add(node.name)
            return False
        return bool(bases & self.base_names)

    # -- operations -------------------------------------------------------

    def handle_chain(self, node: ast.Call, root: ast.expr, links: list[Link]) -> None:
        if self._construct(node, root, links):
            return
        if self._query(node, root, links):
            return
        self._session_call(node, links)

    def _construct_kind(self, local: str) -> Optional[str]:
        origin = self.imported_names.get(local)
        if origin is not None and origin.startswith("sqlalchemy"):
            name = origin.rsplit(".", 1)[-1]
            return name if name in CONSTRUCTS else None
        # select() is unambiguous enough without an import
        return local if local == "select" else None

    def _construct(self, node: ast.Call, root: ast.expr, links: list[Link]) -> bool:
        """``select(User)...``, ``update(User)...`` and ``sa.insert(User)``."""
        if isinstance(root, ast.Call) and isinstance(root.func, ast.Name):
            kind = self._construct_kind(root.func.id)
            call, rest = root, links
        elif (
            isinstance(root, ast.Name)
            and (self.module_aliases.get(root.id) or "").startswith("sqlalchemy")
            and links
            and links[0][0] in CONSTRUCTS
            and links[0][1] is not None
        ):
            kind = links[0][0]
            call, rest = links[0][1], links[1:]
        else:
            return False

        if kind is None or not call.args:
            return False
        entity = entity_reference(call.args[0])
        if entity is None:
            return False

        chain = [(kind, call)] + rest
        self.record(entity, chain_name(chain), CONSTRUCTS[kind], node, chain)
        return True

    def _query(self, node: ast.Call, root: ast.expr, links: list[Link]) -> bool:
        """``session.query(User)...`` and Flask-SQLAlchemy ``User.query...``."""
        if (
            isinstance(root, ast.Name)
            and entity_reference(root)
            and links
            and links[0] == ("query", None)
        ):
            self.record(root.id, chain_name(links), OperationType.READ, node, links)
            return True

        for index, (name, call) in enumerate(links):
            if name == "query" and call is not None and call.args:
                entity = entity_reference(call.args[0])
                if entity is None:
                    return False
                rest = links[index:]
                self.record(entity, chain_name(rest), OperationType.READ, node, rest)
                return True
        return False

    def _session_call(self, node: ast.Call, links: list[Link]) -> None:
        for index, (name, call) in enumerate(links):
            if call is None or not isinstance(call.func, ast.Attribute):
                continue
            if not _is_session_like(call.func.value):
                continue
            rest = links[index:]

            if name == "get" and call.args:
                entity = entity_reference(call.args[0])
                if entity is not None:
                    arguments = links[index + 1 :]
                    self.record(entity, chain_name(rest), OperationType.READ, node, arguments)
                return
            if name in SESSION_WRITES and call.args:
                entity = constructed_entity(call.args[0])
                if entity is not None:
                    # constructor keywords are the written columns
                    self.record(
                        entity,
                        chain_name(rest),
                        OperationType.WRITE,
                        node,
                        rest + [(entity, call.args[0])],
                    )
                return
            if name in SESSION_TRANSACTIONS:
                self.record_transaction(chain_name(rest), node, rest)
                return


class SqlAlchemyDetector(PythonOrmDetector):
    """Finds mapped classes and the queries, writes and transactions on them."""

    name = "sqlalchemy"
    visitor_class = SqlAlchemyVisitor
