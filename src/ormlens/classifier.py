"""Statistics over analysis results, driven by item notes.

Two independent counting schemes exist:

- :func:`group_operation_types` counts *occurrences* per tag, combining each
  operation's structural type with ``@tag`` / ``@tag(id)`` annotations. Explicit
  ids deduplicate, so several operations can be declared to be one logical
  action.
- :func:`count_tags` is a coarse substring count over a closed vocabulary of
  classification tags, used for audit summaries.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from .annotations import parse_note
from .model import Entity, Operation, Partition, is_pseudo_entity
from .result import AnalyzeResult

CLASSIFICATION_TAGS: tuple[str, ...] = (
    "cda-tran",
    "non-trivial",
    "non-eq",
    "full-scan",
    "join",
    "cor-subquery",
    "cda-dep",
    "1shot-easy",
    "1shot-hard",
    "mshot",
    "phantom",
)


def group_operation_types(
    operations: Iterable[Operation],
    prior: Optional[dict[str, set[str]]] = None,
) -> dict[str, set[str]]:
    """Map each tag to the set of distinct occurrence ids seen for it.

    Args:
        operations: Operations to classify
        prior: Accumulator from a previous call; copied, never mutated

    Returns:
        New mapping from tag name to occurrence ids. The size of each set is
        the occurrence count for that tag.
    """
    result: dict[str, set[str]] = {tag: set(ids) for tag, ids in (prior or {}).items()}

    def add(tag: str, occurrence_id: Optional[str] = None) -> None:
        result.setdefault(tag, set()).add(occurrence_id or uuid.uuid4().hex)

    for operation in operations:
        annotations = parse_note(operation.note)
        type_name = operation.type.value
        if not annotations.suppresses(type_name):
            add(type_name)
        for token in annotations.tags:
            add(token.tag, token.explicit_id)

    return result


def operation_type_counts(operations: Iterable[Operation]) -> dict[str, int]:
    """Occurrence count per tag, sorted by tag name."""
    grouped = group_operation_types(operations)
    return {tag: len(grouped[tag]) for tag in sorted(grouped)}


def count_tags(entities: Iterable[Entity]) -> dict[str, int]:
    """Count entities and operations whose note mentions each classification tag.

    Matching is by substring; tags that never occur are left out.
    """
    counts: dict[str, int] = {}

    def tally(note: str) -> None:
        for tag in CLASSIFICATION_TAGS:
            if tag in note:
                counts[tag] = counts.get(tag, 0) + 1

    for entity in entities:
        tally(entity.note)
        for operation in entity.operations:
            tally(operation.note)

    return counts


@dataclass
class PartitionStats:
    partition: Partition
    entities: int
    operation_types: dict[str, int] = field(default_factory=dict)
    tags: dict[str, int] = field(default_factory=dict)


def partition_statistics(result: AnalyzeResult) -> list[PartitionStats]:
    """Summarize both partitions of *result* for statistics views.

    Pseudo-entities such as ``[transaction]`` are not counted as entities,
    but their operations still contribute to the operation counts.
    """
    stats: list[PartitionStats] = []
    for partition, entities in result.groups():
        grouped: dict[str, set[str]] = {}
        for entity in entities.values():
            grouped = group_operation_types(entity.operations, grouped)

        stats.append(
            PartitionStats(
                partition=partition,
                entities=sum(1 for name in entities if not is_pseudo_entity(name)),
                operation_types={tag: len(ids) for tag, ids in sorted(grouped.items())},
                tags=count_tags(entities.values()),
            )
        )
    return stats
