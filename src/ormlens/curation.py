"""Manual curation of analysis results.

These are the only mutations a presentation layer performs. Invalid input
(empty or duplicate names, a command aimed at the wrong item kind, a missing
destination) raises :class:`UserInputError` before anything changes. Requests
that would break ownership rules, such as removing an item found by analysis
or moving a stale reference, are ignored and return False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .exceptions import UserInputError
from .logging_config import get_logger
from .model import (
    Argument,
    Entity,
    ItemKind,
    Operation,
    OperationType,
    Partition,
    Selection,
)
from .result import AnalyzeResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class ItemRef:
    """Address of one item: its kind, partition, owning entity and objects.

    Operations and arguments are held by identity, so a reference goes stale
    once its item is removed or moved elsewhere.
    """

    kind: ItemKind
    partition: Partition
    entity: str
    operation: Optional[Operation] = None
    argument: Optional[Argument] = None

    @classmethod
    def for_entity(cls, partition: Partition, entity: str) -> ItemRef:
        return cls(ItemKind.ENTITY, partition, entity)

    @classmethod
    def for_operation(cls, partition: Partition, entity: str, operation: Operation) -> ItemRef:
        return cls(ItemKind.OPERATION, partition, entity, operation)

    @classmethod
    def for_argument(
        cls, partition: Partition, entity: str, operation: Operation, argument: Argument
    ) -> ItemRef:
        return cls(ItemKind.ARGUMENT, partition, entity, operation, argument)


def locate(
    result: AnalyzeResult,
    partition: Partition,
    entity: str,
    operation_index: Optional[int] = None,
    argument_index: Optional[int] = None,
) -> ItemRef:
    """Build a reference from zero-based positions, as listed by ``show``.

    Raises:
        UserInputError: If the entity does not exist or an index is out of range
    """
    found = result.get_group(partition).get(entity)
    if found is None:
        raise UserInputError(f"No entity '{entity}' in {partition.value}")
    if operation_index is None:
        if argument_index is not None:
            raise UserInputError("An argument index needs an operation index")
        return ItemRef.for_entity(partition, entity)

    if not 0 <= operation_index < len(found.operations):
        raise UserInputError(
            f"Operation index {operation_index} out of range",
            details={"entity": entity, "operations": str(len(found.operations))},
        )
    operation = found.operations[operation_index]
    if argument_index is None:
        return ItemRef.for_operation(partition, entity, operation)

    if not 0 <= argument_index < len(operation.arguments):
        raise UserInputError(
            f"Argument index {argument_index} out of range",
            details={"operation": operation.name, "arguments": str(len(operation.arguments))},
        )
    return ItemRef.for_argument(partition, entity, operation, operation.arguments[argument_index])


def _index_of(items: list, item: object) -> Optional[int]:
    for index, candidate in enumerate(items):
        if candidate is item:
            return index
    return None


def _clean_name(name: str, what: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise UserInputError(f"{what} name must not be empty")
    return cleaned


def _entity(result: AnalyzeResult, ref: ItemRef) -> Optional[Entity]:
    return result.get_group(ref.partition).get(ref.entity)


def _live_operation(result: AnalyzeResult, ref: ItemRef) -> Optional[tuple[Entity, Operation]]:
    entity = _entity(result, ref)
    if entity is None or ref.operation is None:
        return None
    if _index_of(entity.operations, ref.operation) is None:
        return None
    return entity, ref.operation


def _live_argument(result: AnalyzeResult, ref: ItemRef) -> Optional[tuple[Operation, Argument]]:
    owner = _live_operation(result, ref)
    if owner is None or ref.argument is None:
        return None
    _, operation = owner
    if _index_of(operation.arguments, ref.argument) is None:
        return None
    return operation, ref.argument


def resolve(result: AnalyzeResult, ref: ItemRef):
    """The live item *ref* points at, or None when it is stale."""
    if ref.kind is ItemKind.ENTITY:
        return _entity(result, ref)
    if ref.kind is ItemKind.OPERATION:
        owner = _live_operation(result, ref)
        return owner[1] if owner else None
    owner = _live_argument(result, ref)
    return owner[1] if owner else None


# ---------------------------------------------------------------------------
# Additions
# ---------------------------------------------------------------------------


def add_entity(
    result: AnalyzeResult,
    name: str,
    partition: Partition = Partition.RECOGNIZED,
    selection: Optional[Selection] = None,
) -> Entity:
    name = _clean_name(name, "Entity")
    entities = result.get_group(partition)
    if name in entities:
        raise UserInputError(f"Entity '{name}' already exists in {partition.value}")
    entity = Entity(name=name, selection=selection, is_custom=True)
    entities[name] = entity
    return entity


def add_operation(
    result: AnalyzeResult,
    ref: ItemRef,
    name: str,
    op_type: OperationType,
    selection: Optional[Selection] = None,
) -> Operation:
    if ref.kind is not ItemKind.ENTITY:
        raise UserInputError("Operations can only be added to an entity")
    name = _clean_name(name, "Operation")
    entity = _entity(result, ref)
    if entity is None:
        raise UserInputError(f"No entity '{ref.entity}' in {ref.partition.value}")
    operation = Operation(name=name, type=op_type, selection=selection, is_custom=True)
    entity.operations.append(operation)
    return operation


def add_argument(
    result: AnalyzeResult,
    ref: ItemRef,
    name: str,
    selection: Optional[Selection] = None,
) -> Argument:
    if ref.kind is not ItemKind.OPERATION:
        raise UserInputError("Arguments can only be added to an operation")
    name = _clean_name(name, "Argument")
    owner = _live_operation(result, ref)
    if owner is None:
        raise UserInputError(f"Operation no longer exists under '{ref.entity}'")
    argument = Argument(name=name, selection=selection, is_custom=True)
    owner[1].arguments.append(argument)
    return argument


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


def remove_item(result: AnalyzeResult, ref: ItemRef) -> bool:
    """Delete a custom item and its subtree. Detected items are kept."""
    item = resolve(result, ref)
    if item is None:
        logger.debug(f"Ignoring removal of stale {ref.kind.value} reference")
        return False
    if not item.is_custom:
        logger.debug(f"Ignoring removal of detected {ref.kind.value} '{item.name}'")
        return False

    if ref.kind is ItemKind.ENTITY:
        del result.get_group(ref.partition)[ref.entity]
    elif ref.kind is ItemKind.OPERATION:
        entity = _entity(result, ref)
        del entity.operations[_index_of(entity.operations, item)]
    else:
        operation = ref.operation
        del operation.arguments[_index_of(operation.arguments, item)]
    return True


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------


def move_entity(result: AnalyzeResult, ref: ItemRef, destination: Partition) -> bool:
    """Move an entity, with its whole subtree, to the other partition."""
    if ref.kind is not ItemKind.ENTITY or ref.partition is destination:
        return False
    source = result.get_group(ref.partition)
    entity = source.get(ref.entity)
    if entity is None:
        return False

    target = result.get_group(destination)
    if entity.name in target:
        raise UserInputError(f"Entity '{entity.name}' already exists in {destination.value}")

    del source[ref.entity]
    target[entity.name] = entity
    return True


def move_operation(
    result: AnalyzeResult, ref: ItemRef, destination: Partition, entity_name: str
) -> bool:
    """Transfer an operation to the entity *entity_name* of *destination*."""
    if ref.kind is not ItemKind.OPERATION:
        return False
    owner = _live_operation(result, ref)
    if owner is None:
        logger.debug("Ignoring move of stale operation reference")
        return False

    source, operation = owner
    target = result.get_group(destination).get(entity_name)
    if target is None:
        raise UserInputError(f"No entity '{entity_name}' in {destination.value}")
    if target is source:
        return False

    del source.operations[_index_of(source.operations, operation)]
    target.operations.append(operation)
    return True


def move_argument(result: AnalyzeResult, ref: ItemRef, target_ref: ItemRef) -> bool:
    """Transfer an argument to the operation *target_ref* points at."""
    if ref.kind is not ItemKind.ARGUMENT:
        return False
    owner = _live_argument(result, ref)
    if owner is None:
        logger.debug("Ignoring move of stale argument reference")
        return False

    if target_ref.kind is not ItemKind.OPERATION:
        raise UserInputError("Arguments can only be moved to an operation")
    destination = _live_operation(result, target_ref)
    if destination is None:
        raise UserInputError(f"Target operation no longer exists under '{target_ref.entity}'")

    source, argument = owner
    target = destination[1]
    if target is source:
        return False

    del source.arguments[_index_of(source.arguments, argument)]
    target.arguments.append(argument)
    return True


def set_note(result: AnalyzeResult, ref: ItemRef, note: str) -> bool:
    item = resolve(result, ref)
    if item is None:
        return False
    item.note = note
    return True
