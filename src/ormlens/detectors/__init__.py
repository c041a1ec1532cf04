"""ORM detectors."""

from .base import ArgumentFinding, Detector, Finding, OperationFinding
from .django import DjangoDetector
from .python_ast import TRANSACTION_ENTITY, PythonOrmDetector
from .sqlalchemy import SqlAlchemyDetector

DETECTORS: dict[str, type[Detector]] = {
    SqlAlchemyDetector.name: SqlAlchemyDetector,
    DjangoDetector.name: DjangoDetector,
}

__all__ = [
    "ArgumentFinding",
    "Detector",
    "DETECTORS",
    "DjangoDetector",
    "Finding",
    "OperationFinding",
    "PythonOrmDetector",
    "SqlAlchemyDetector",
    "TRANSACTION_ENTITY",
]
