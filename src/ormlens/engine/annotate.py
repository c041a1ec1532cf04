"""Rule-driven bulk annotation of operations.

Each rule appends its tag to the note of every matching operation. Rules only
ever add text, so running one twice changes nothing the second time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from ..exceptions import UserInputError
from ..model import Operation, OperationType
from ..result import AnalyzeResult

JOIN_PATTERN = re.compile(
    r"\b(join|outerjoin|joinedload|selectinload|select_related|prefetch_related|relations)\b"
)

NON_EQ_PATTERN = re.compile(
    r"<|>|!="
    r"|\b(in_|not_in|like|ilike|between)\s*\("
    r"|__(gt|gte|lt|lte|in|range|contains|icontains|startswith|endswith|ne)\b"
)


@dataclass(frozen=True)
class AutoAnnotateRule:
    tag: str
    description: str
    predicate: Callable[[Operation], bool]


def _is_full_scan(operation: Operation) -> bool:
    return operation.type is OperationType.READ and not operation.arguments


def _has_join(operation: Operation) -> bool:
    return any(JOIN_PATTERN.search(a.name) for a in operation.arguments)


def _has_non_eq(operation: Operation) -> bool:
    return any(NON_EQ_PATTERN.search(a.name) for a in operation.arguments)


RULES: tuple[AutoAnnotateRule, ...] = (
    AutoAnnotateRule("full-scan", "read operations without any argument", _is_full_scan),
    AutoAnnotateRule("join", "operations joining or eager-loading relations", _has_join),
    AutoAnnotateRule("non-eq", "operations filtering on a non-equality predicate", _has_non_eq),
)


def supported_tags() -> tuple[str, ...]:
    return tuple(rule.tag for rule in RULES)


def append_tag(note: str, tag: str) -> str:
    if tag in note:
        return note
    return f"{note}, {tag}" if note else tag


def auto_annotate(result: AnalyzeResult, tag: str) -> int:
    """Append *tag* to every operation its rule matches, in both partitions.

    Returns:
        Number of operations whose note changed

    Raises:
        UserInputError: If no rule produces *tag*
    """
    rule = next((r for r in RULES if r.tag == tag), None)
    if rule is None:
        raise UserInputError(
            f"Unsupported tag '{tag}'", details={"supported": ", ".join(supported_tags())}
        )

    touched = 0
    for _, entities in result.groups():
        for entity in entities.values():
            for operation in entity.operations:
                if not rule.predicate(operation):
                    continue
                note = append_tag(operation.note, tag)
                if note != operation.note:
                    operation.note = note
                    touched += 1
    return touched
