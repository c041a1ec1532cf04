"""Stats command: provenance and per-partition classification counts."""

import typer
from rich.markup import escape
from rich.table import Table

from . import app
from ._common import console, curation_session, handle_errors


@app.command()
def stats(ctx: typer.Context):
    """
    Show statistics of the saved analysis.

    Operation counts combine each operation's type with the @tag and
    @tag(id) annotations in its note; '!read' style tokens suppress the type.
    """
    with handle_errors("stats"), curation_session(ctx) as session:
        repository = session.result.get_repository()
        if repository is not None and (repository.url or repository.commit_hash):
            console.print(f"Repository: [blue]{escape(repository.url or '(no remote)')}[/blue]")
            console.print(f"Commit: [blue]{escape(repository.commit_hash or '(unknown)')}[/blue]")
        console.print(f"Analyzed files: [yellow]{len(session.result.analyzed_files)}[/yellow]")
        console.print()

        for partition_stats in session.statistics():
            table = Table(
                title=f"{partition_stats.partition.value} ({partition_stats.entities} entities)",
                title_justify="left",
                show_header=True,
                header_style="bold",
            )
            table.add_column("Classification")
            table.add_column("Operations", justify="right")
            table.add_column("Tagged items", justify="right")

            names = sorted(set(partition_stats.operation_types) | set(partition_stats.tags))
            for name in names:
                table.add_row(
                    escape(name),
                    str(partition_stats.operation_types.get(name, "")),
                    str(partition_stats.tags.get(name, "")),
                )
            console.print(table)
