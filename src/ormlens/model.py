"""Data model for ORM analysis results.

An :class:`Entity` owns an ordered list of :class:`Operation` objects, each of
which owns an ordered list of :class:`Argument` objects. Entities live in one
of the two partitions named by :class:`Partition`. Every item class carries a
``kind`` discriminator so consumers can dispatch on :class:`ItemKind` instead
of probing attributes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


class ItemKind(Enum):
    ENTITY = "entity"
    OPERATION = "operation"
    ARGUMENT = "argument"


class OperationType(str, Enum):
    READ = "read"
    WRITE = "write"
    OTHER = "other"
    TRANSACTION = "transaction"


class Partition(Enum):
    """The two top-level groupings of entities."""

    RECOGNIZED = "Recognized"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, text: str) -> Partition:
        """Resolve a partition from user text, ignoring case."""
        lowered = text.strip().lower()
        for partition in cls:
            if partition.value.lower() == lowered:
                return partition
        raise ValueError(f"Unknown partition '{text}' (expected: recognized, unknown)")


@dataclass(frozen=True)
class Selection:
    """Source anchor. Lines are 1-based, columns 0-based.

    The anchor is captured at detection time and never re-validated, so it may
    point at stale text once the file is edited.
    """

    file_path: str
    from_line: int
    from_column: int
    to_line: int
    to_column: int

    def __str__(self) -> str:
        return f"{self.file_path}:{self.from_line}:{self.from_column}"


@dataclass
class Argument:
    kind: ClassVar[ItemKind] = ItemKind.ARGUMENT

    name: str
    note: str = ""
    selection: Optional[Selection] = None
    is_custom: bool = False


@dataclass
class Operation:
    kind: ClassVar[ItemKind] = ItemKind.OPERATION

    name: str
    type: OperationType
    arguments: list[Argument] = field(default_factory=list)
    note: str = ""
    selection: Optional[Selection] = None
    is_custom: bool = False


@dataclass
class Entity:
    kind: ClassVar[ItemKind] = ItemKind.ENTITY

    name: str
    operations: list[Operation] = field(default_factory=list)
    note: str = ""
    selection: Optional[Selection] = None
    is_custom: bool = False


Item = Union[Entity, Operation, Argument]

PSEUDO_ENTITY_PATTERN = re.compile(r"\[.+\]")


@dataclass(frozen=True)
class Repository:
    """Version-control provenance captured at the start of a fresh run."""

    url: str = ""
    commit_hash: str = ""


def is_pseudo_entity(name: str) -> bool:
    """Bracketed names such as ``[transaction]`` group operations, not tables."""
    return PSEUDO_ENTITY_PATTERN.search(name) is not None
