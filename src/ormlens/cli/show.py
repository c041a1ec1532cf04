"""Show command: the entity tree of the saved analysis."""

from typing import Optional

import typer
from rich.markup import escape
from rich.tree import Tree

from ..classifier import operation_type_counts
from ..codec import encode_snapshot
from ..model import Entity, Partition
from . import app
from ._common import console, curation_session, handle_errors


def _label(name: str, is_custom: bool, note: str, extra: str = "") -> str:
    parts = [f"[bold]{escape(name)}[/bold]"]
    if is_custom:
        parts.append("[magenta]*[/magenta]")
    if extra:
        parts.append(extra)
    if note:
        parts.append(f"[italic yellow]{escape(note)}[/italic yellow]")
    return " ".join(parts)


def _entity_branch(tree: Tree, entity: Entity) -> None:
    extra = []
    if entity.selection:
        extra.append(f"[dim]{escape(str(entity.selection))}[/dim]")
    counts = operation_type_counts(entity.operations)
    if counts:
        summary = ", ".join(f"{tag}: {n}" for tag, n in counts.items())
        extra.append(f"[cyan]({escape(summary)})[/cyan]")
    branch = tree.add(_label(entity.name, entity.is_custom, entity.note, " ".join(extra)))

    for op_pos, operation in enumerate(entity.operations, start=1):
        where = f"[dim]{escape(str(operation.selection))}[/dim]" if operation.selection else ""
        op_branch = branch.add(
            f"{op_pos}. [green]{operation.type.value}[/green] "
            + _label(operation.name, operation.is_custom, operation.note, where)
        )
        for arg_pos, argument in enumerate(operation.arguments, start=1):
            op_branch.add(f"{arg_pos}. " + _label(argument.name, argument.is_custom, argument.note))


@app.command()
def show(
    ctx: typer.Context,
    partition: Optional[Partition] = typer.Option(
        None,
        "--partition",
        "-p",
        help="Only show this partition",
        case_sensitive=False,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the full snapshot as JSON",
    ),
):
    """
    Show entities, operations and arguments.

    Operations and arguments are numbered; use those numbers with the
    'operation', 'argument' and 'note' commands. Manually added items are
    marked with *.
    """
    with handle_errors("show"), curation_session(ctx) as session:
        result = session.result

        if json_output:
            typer.echo(encode_snapshot(result.snapshot_state()), nl=False)
            return

        for group, entities in result.groups():
            if partition is not None and group is not partition:
                continue
            tree = Tree(
                f"[bold cyan]{group.value}[/bold cyan] [dim]({len(entities)} entities)[/dim]"
            )
            for entity in entities.values():
                _entity_branch(tree, entity)
            console.print(tree)
