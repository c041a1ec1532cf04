"""
ormlens - ORM usage discovery for Python codebases

Statically finds the persistent entities of a project, the queries and writes
performed on them and the arguments those operations use, and keeps the
findings in a curated, version-controllable snapshot.
"""

__version__ = "0.1.0"

from .model import Argument, Entity, ItemKind, Operation, OperationType, Partition, Selection
from .result import AnalyzeResult

__all__ = [
    "AnalyzeResult",
    "Argument",
    "Entity",
    "ItemKind",
    "Operation",
    "OperationType",
    "Partition",
    "Selection",
]
