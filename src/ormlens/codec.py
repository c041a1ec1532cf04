"""JSON snapshot codec for analysis results.

JSON has no set type and object key order is not something every consumer
preserves, so both containers are written as ordered entry lists carrying an
explicit discriminator::

    {"kind": "mapping", "entries": [["User", {...}], ...]}
    {"kind": "set", "entries": ["app/models.py", ...]}

Set entries are sorted and item objects have sorted keys, so snapshots
produce small, readable diffs under version control.

Decoding validates every node and raises :class:`SnapshotDecodeError` on the
first mismatch. It builds fresh objects and never touches a live model.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from . import __version__
from .exceptions import SnapshotDecodeError
from .model import (
    Argument,
    Entity,
    Operation,
    OperationType,
    Partition,
    Repository,
    Selection,
)

SCHEMA_VERSION = 1

MAPPING_KIND = "mapping"
SET_KIND = "set"


@dataclass
class SnapshotState:
    """Decoded snapshot, ready to be swapped into an AnalyzeResult."""

    groups: dict[Partition, dict[str, Entity]] = field(
        default_factory=lambda: {partition: {} for partition in Partition}
    )
    analyzed_files: set[str] = field(default_factory=set)
    repository: Optional[Repository] = None


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_snapshot(state: SnapshotState) -> str:
    payload = {
        "schema_version": SCHEMA_VERSION,
        "tool_version": __version__,
        "repository": _encode_repository(state.repository),
        "groups": _mapping(
            (partition.value, _mapping((name, _encode_entity(e)) for name, e in entities.items()))
            for partition, entities in state.groups.items()
        ),
        "analyzed_files": {"kind": SET_KIND, "entries": sorted(state.analyzed_files)},
    }
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def _mapping(entries) -> dict[str, Any]:
    return {"kind": MAPPING_KIND, "entries": [[key, value] for key, value in entries]}


def _encode_repository(repository: Optional[Repository]) -> Optional[dict[str, str]]:
    if repository is None:
        return None
    return {"commit_hash": repository.commit_hash, "url": repository.url}


def _encode_selection(selection: Optional[Selection]) -> Optional[dict[str, Any]]:
    if selection is None:
        return None
    return {
        "file_path": selection.file_path,
        "from_column": selection.from_column,
        "from_line": selection.from_line,
        "to_column": selection.to_column,
        "to_line": selection.to_line,
    }


def _encode_argument(argument: Argument) -> dict[str, Any]:
    return {
        "is_custom": argument.is_custom,
        "name": argument.name,
        "note": argument.note,
        "selection": _encode_selection(argument.selection),
    }


def _encode_operation(operation: Operation) -> dict[str, Any]:
    return {
        "arguments": [_encode_argument(a) for a in operation.arguments],
        "is_custom": operation.is_custom,
        "name": operation.name,
        "note": operation.note,
        "selection": _encode_selection(operation.selection),
        "type": operation.type.value,
    }


def _encode_entity(entity: Entity) -> dict[str, Any]:
    return {
        "is_custom": entity.is_custom,
        "name": entity.name,
        "note": entity.note,
        "operations": [_encode_operation(o) for o in entity.operations],
        "selection": _encode_selection(entity.selection),
    }


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_snapshot(text: str) -> SnapshotState:
    """Parse and validate snapshot text.

    Raises:
        SnapshotDecodeError: On malformed JSON or any structural mismatch
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotDecodeError(f"not valid JSON: {e}")
    except (ValueError, RecursionError) as e:
        # nesting too deep or integer literals past the digit limit
        raise SnapshotDecodeError(f"cannot parse JSON: {e}")

    root = _expect(payload, dict, "snapshot")
    version = root.get("schema_version")
    if version != SCHEMA_VERSION:
        raise SnapshotDecodeError(f"unsupported schema_version {version!r}")

    state = SnapshotState(repository=_decode_repository(root.get("repository")))

    seen: set[Partition] = set()
    for key, value in _decode_mapping(root.get("groups"), "groups"):
        try:
            partition = Partition(key)
        except ValueError:
            raise SnapshotDecodeError(f"unknown partition {key!r}")
        if partition in seen:
            raise SnapshotDecodeError(f"duplicate partition {key!r}")
        seen.add(partition)

        where = f"groups.{key}"
        entities = state.groups[partition]
        for name, raw_entity in _decode_mapping(value, where):
            entity = _decode_entity(raw_entity, f"{where}.{name}")
            if entity.name != name:
                raise SnapshotDecodeError(f"{where}: key {name!r} names entity {entity.name!r}")
            if name in entities:
                raise SnapshotDecodeError(f"{where}: duplicate entity {name!r}")
            entities[name] = entity

    if seen != set(Partition):
        missing = ", ".join(p.value for p in Partition if p not in seen)
        raise SnapshotDecodeError(f"missing partition(s): {missing}")

    for entry in _decode_set(root.get("analyzed_files"), "analyzed_files"):
        state.analyzed_files.add(_expect(entry, str, "analyzed_files entry"))

    return state


def _expect(value: Any, expected: type, where: str) -> Any:
    # bool is a subclass of int; a flag is never a valid line number
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise SnapshotDecodeError(
            f"{where}: expected {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _decode_container(value: Any, kind: str, where: str) -> list:
    container = _expect(value, dict, where)
    if container.get("kind") != kind:
        raise SnapshotDecodeError(f"{where}: expected kind {kind!r}, got {container.get('kind')!r}")
    return _expect(container.get("entries"), list, f"{where}.entries")


def _decode_mapping(value: Any, where: str) -> list[tuple[str, Any]]:
    pairs = []
    for entry in _decode_container(value, MAPPING_KIND, where):
        if not isinstance(entry, list) or len(entry) != 2:
            raise SnapshotDecodeError(f"{where}: mapping entries must be [key, value] pairs")
        pairs.append((_expect(entry[0], str, f"{where} key"), entry[1]))
    return pairs


def _decode_set(value: Any, where: str) -> list:
    return _decode_container(value, SET_KIND, where)


def _decode_repository(value: Any) -> Optional[Repository]:
    if value is None:
        return None
    raw = _expect(value, dict, "repository")
    return Repository(
        url=_expect(raw.get("url", ""), str, "repository.url"),
        commit_hash=_expect(raw.get("commit_hash", ""), str, "repository.commit_hash"),
    )


def _decode_selection(value: Any, where: str) -> Optional[Selection]:
    if value is None:
        return None
    raw = _expect(value, dict, where)
    return Selection(
        file_path=_expect(raw.get("file_path"), str, f"{where}.file_path"),
        from_line=_expect(raw.get("from_line"), int, f"{where}.from_line"),
        from_column=_expect(raw.get("from_column"), int, f"{where}.from_column"),
        to_line=_expect(raw.get("to_line"), int, f"{where}.to_line"),
        to_column=_expect(raw.get("to_column"), int, f"{where}.to_column"),
    )


def _decode_common(raw: dict, where: str) -> dict[str, Any]:
    return {
        "name": _expect(raw.get("name"), str, f"{where}.name"),
        "note": _expect(raw.get("note", ""), str, f"{where}.note"),
        "is_custom": _expect(raw.get("is_custom", False), bool, f"{where}.is_custom"),
        "selection": _decode_selection(raw.get("selection"), f"{where}.selection"),
    }


def _decode_argument(value: Any, where: str) -> Argument:
    return Argument(**_decode_common(_expect(value, dict, where), where))


def _decode_operation(value: Any, where: str) -> Operation:
    raw = _expect(value, dict, where)
    type_name = raw.get("type")
    try:
        op_type = OperationType(type_name)
    except ValueError:
        raise SnapshotDecodeError(f"{where}: unknown operation type {type_name!r}")
    arguments = _expect(raw.get("arguments", []), list, f"{where}.arguments")
    return Operation(
        type=op_type,
        arguments=[_decode_argument(a, f"{where}.arguments[{i}]") for i, a in enumerate(arguments)],
        **_decode_common(raw, where),
    )


def _decode_entity(value: Any, where: str) -> Entity:
    raw = _expect(value, dict, where)
    operations = _expect(raw.get("operations", []), list, f"{where}.operations")
    return Entity(
        operations=[
            _decode_operation(o, f"{where}.operations[{i}]") for i, o in enumerate(operations)
        ],
        **_decode_common(raw, where),
    )
