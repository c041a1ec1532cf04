"""Manual curation commands."""

from typing import Optional

import typer
from rich.markup import escape

from ..curation import locate
from ..engine import RULES
from ..model import OperationType, Partition
from . import app, argument_app, entity_app, operation_app
from ._common import console, curation_session, handle_errors, to_index

PARTITION_HELP = "Partition holding the entity"


def _partition_option(default: Partition = Partition.RECOGNIZED, help_text: str = PARTITION_HELP):
    return typer.Option(default, "--partition", "-p", help=help_text, case_sensitive=False)


def _report(changed: bool, done: str, skipped: str) -> None:
    if changed:
        console.print(f"[green]{escape(done)}[/green]")
    else:
        console.print(f"[yellow]{escape(skipped)}[/yellow]")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@entity_app.command("add")
def entity_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Entity name"),
    partition: Partition = _partition_option(),
):
    """Add a custom entity."""
    with handle_errors("entity add"), curation_session(ctx) as session:
        entity = session.add_entity(name, partition)
        console.print(f"[green]Added entity {escape(entity.name)} to {partition.value}[/green]")


@entity_app.command("remove")
def entity_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Entity name"),
    partition: Partition = _partition_option(),
):
    """Remove a custom entity. Detected entities are kept."""
    with handle_errors("entity remove"), curation_session(ctx) as session:
        ref = locate(session.result, partition, name)
        _report(
            session.remove_item(ref),
            f"Removed entity {name}",
            f"Entity {name} was found by analysis and cannot be removed",
        )


@entity_app.command("move")
def entity_move(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Entity name"),
    destination: Partition = typer.Option(
        ..., "--to", help="Destination partition", case_sensitive=False
    ),
    partition: Partition = _partition_option(Partition.UNKNOWN, "Partition the entity is in"),
):
    """Move an entity with all its operations to another partition."""
    with handle_errors("entity move"), curation_session(ctx) as session:
        ref = locate(session.result, partition, name)
        _report(
            session.move_entity(ref, destination),
            f"Moved entity {name} to {destination.value}",
            f"Entity {name} is already in {destination.value}",
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@operation_app.command("add")
def operation_add(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    name: str = typer.Argument(..., help="Operation name"),
    op_type: OperationType = typer.Option(
        OperationType.READ, "--type", "-t", help="Operation type", case_sensitive=False
    ),
    partition: Partition = _partition_option(),
):
    """Add a custom operation to an entity."""
    with handle_errors("operation add"), curation_session(ctx) as session:
        ref = locate(session.result, partition, entity)
        operation = session.add_operation(ref, name, op_type)
        console.print(
            f"[green]Added {operation.type.value} operation {escape(operation.name)} "
            f"to {escape(entity)}[/green]"
        )


@operation_app.command("remove")
def operation_remove(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    operation: int = typer.Argument(..., help="Operation number as listed by 'show'"),
    partition: Partition = _partition_option(),
):
    """Remove a custom operation."""
    with handle_errors("operation remove"), curation_session(ctx) as session:
        ref = locate(session.result, partition, entity, to_index(operation, "Operation"))
        _report(
            session.remove_item(ref),
            f"Removed operation {ref.operation.name}",
            f"Operation {ref.operation.name} was found by analysis and cannot be removed",
        )


@operation_app.command("move")
def operation_move(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    operation: int = typer.Argument(..., help="Operation number as listed by 'show'"),
    to_entity: str = typer.Option(..., "--to-entity", help="Destination entity"),
    to_partition: Partition = typer.Option(
        Partition.RECOGNIZED,
        "--to-partition",
        help="Partition of the destination entity",
        case_sensitive=False,
    ),
    partition: Partition = _partition_option(),
):
    """Move an operation to another entity."""
    with handle_errors("operation move"), curation_session(ctx) as session:
        ref = locate(session.result, partition, entity, to_index(operation, "Operation"))
        _report(
            session.move_operation(ref, to_partition, to_entity),
            f"Moved operation {ref.operation.name} to {to_entity}",
            f"Operation {ref.operation.name} already belongs to {to_entity}",
        )


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


@argument_app.command("add")
def argument_add(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    operation: int = typer.Argument(..., help="Operation number as listed by 'show'"),
    name: str = typer.Argument(..., help="Argument name"),
    partition: Partition = _partition_option(),
):
    """Add a custom argument to an operation."""
    with handle_errors("argument add"), curation_session(ctx) as session:
        ref = locate(session.result, partition, entity, to_index(operation, "Operation"))
        argument = session.add_argument(ref, name)
        console.print(
            f"[green]Added argument {escape(argument.name)} to {escape(ref.operation.name)}[/green]"
        )


@argument_app.command("remove")
def argument_remove(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    operation: int = typer.Argument(..., help="Operation number as listed by 'show'"),
    argument: int = typer.Argument(..., help="Argument number as listed by 'show'"),
    partition: Partition = _partition_option(),
):
    """Remove a custom argument."""
    with handle_errors("argument remove"), curation_session(ctx) as session:
        ref = locate(
            session.result,
            partition,
            entity,
            to_index(operation, "Operation"),
            to_index(argument, "Argument"),
        )
        _report(
            session.remove_item(ref),
            f"Removed argument {ref.argument.name}",
            f"Argument {ref.argument.name} was found by analysis and cannot be removed",
        )


@argument_app.command("move")
def argument_move(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Owning entity"),
    operation: int = typer.Argument(..., help="Operation number as listed by 'show'"),
    argument: int = typer.Argument(..., help="Argument number as listed by 'show'"),
    to_entity: str = typer.Option(..., "--to-entity", help="Entity of the destination operation"),
    to_operation: int = typer.Option(..., "--to-operation", help="Destination operation number"),
    to_partition: Partition = typer.Option(
        Partition.RECOGNIZED,
        "--to-partition",
        help="Partition of the destination entity",
        case_sensitive=False,
    ),
    partition: Partition = _partition_option(),
):
    """Move an argument to another operation."""
    with handle_errors("argument move"), curation_session(ctx) as session:
        ref = locate(
            session.result,
            partition,
            entity,
            to_index(operation, "Operation"),
            to_index(argument, "Argument"),
        )
        target = locate(
            session.result, to_partition, to_entity, to_index(to_operation, "Operation")
        )
        _report(
            session.move_argument(ref, target),
            f"Moved argument {ref.argument.name} to {target.operation.name}",
            f"Argument {ref.argument.name} already belongs to {target.operation.name}",
        )


# ---------------------------------------------------------------------------
# Notes and annotation
# ---------------------------------------------------------------------------


@app.command()
def note(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="Entity name"),
    operation: Optional[int] = typer.Argument(None, help="Operation number"),
    argument: Optional[int] = typer.Argument(None, help="Argument number"),
    text: str = typer.Option(..., "--set", "-s", help="New note text ('' clears it)"),
    partition: Partition = _partition_option(),
):
    """
    Set the note of an entity, operation or argument.

    Notes may carry @tag, @tag(id) and !type tokens that drive 'stats'.
    """
    with handle_errors("note"), curation_session(ctx) as session:
        ref = locate(
            session.result,
            partition,
            entity,
            to_index(operation, "Operation"),
            to_index(argument, "Argument"),
        )
        session.set_note(ref, text)
        console.print(f"[green]Updated note of {ref.kind.value}[/green]")


@app.command()
def annotate(
    ctx: typer.Context,
    tag: Optional[str] = typer.Argument(None, help="Tag to apply"),
    list_tags: bool = typer.Option(False, "--list", "-l", help="List supported tags"),
):
    """Append a tag to the note of every operation matching its rule."""
    if list_tags or tag is None:
        for rule in RULES:
            console.print(f"[bold]{rule.tag}[/bold]  {rule.description}")
        return

    with handle_errors("annotate"), curation_session(ctx) as session:
        touched = session.auto_annotate(tag)
        console.print(f"[green]Tagged {touched} operation(s) with {escape(tag)}[/green]")
