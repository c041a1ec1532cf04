"""Analysis command: run the engine with live progress."""

import re
import threading
from typing import Optional

import typer
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ..engine import ANALYZERS, AnalysisOutcome, CancellationToken
from ..exceptions import AnalysisFailure
from ..model import Partition
from ..session import WorkspaceSession
from . import app
from ._common import console, handle_errors, open_session

PROGRESS_MESSAGE = re.compile(r"^\[(\d+)/(\d+)\] (.*)$")

OUTCOME_STYLE = {
    AnalysisOutcome.COMPLETED: "green",
    AnalysisOutcome.RESUMED: "cyan",
    AnalysisOutcome.CANCELLED: "yellow",
    AnalysisOutcome.FAILED: "red",
}


def _run_with_progress(session: WorkspaceSession, reanalyze: bool) -> bool:
    """Run the engine on a worker thread; Ctrl-C cancels at the next batch."""
    token = CancellationToken()
    outcome: dict[str, bool] = {}
    run = session.reanalyze if reanalyze else session.analyze

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(bar_width=40, complete_style="cyan", finished_style="green"),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Analyzing ({session.analyzer.get_name()})", total=None)

        def on_message(message: str) -> None:
            match = PROGRESS_MESSAGE.match(message)
            if match:
                done, total, sample = match.groups()
                progress.update(
                    task,
                    completed=int(done),
                    total=int(total),
                    description=escape(sample),
                )
            else:
                progress.console.print(f"[dim]{escape(message)}[/dim]")

        def work() -> None:
            outcome["ok"] = run(on_message, token)

        worker = threading.Thread(target=work, name="ormlens-analyze", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(0.1)
        except KeyboardInterrupt:
            token.cancel()
            progress.console.print("[yellow]Cancelling after the current batch...[/yellow]")
            worker.join()

    return outcome.get("ok", False)


@app.command()
def analyze(
    ctx: typer.Context,
    analyzer: Optional[str] = typer.Option(
        None,
        "--analyzer",
        "-a",
        help=f"Analyzer to run: {', '.join(sorted(ANALYZERS))} (default: from config)",
    ),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        "-b",
        help="Files per batch",
        min=1,
    ),
    reanalyze: bool = typer.Option(
        False,
        "--reanalyze",
        help="Discard the saved analysis, including manual edits, and scan again",
    ),
    no_cache: bool = typer.Option(
        False,
        "--no-cache",
        help="Do not use cached per-file findings",
    ),
):
    """
    Analyze the workspace, or load the saved analysis if there is one.

    Press Ctrl-C to stop after the current batch; the completed part is saved.
    """
    with handle_errors("analysis"), open_session(
        ctx,
        analyzer=analyzer,
        batch_size=batch_size,
        cache_enabled=False if no_cache else None,
    ) as session:
        ok = _run_with_progress(session, reanalyze)
        outcome = session.analyzer.outcome

        if outcome is not None:
            style = OUTCOME_STYLE[outcome]
            console.print(f"[{style}]Analysis {outcome.value}[/{style}]")

        for partition, _ in session.result.groups():
            console.print(
                f"  {partition.value}: "
                f"[yellow]{session.result.entity_count(partition)}[/yellow] entities, "
                f"[yellow]{session.result.operation_count(partition)}[/yellow] operations"
            )
        if session.result.entity_count(Partition.UNKNOWN):
            console.print(
                "[dim]Run 'ormlens show --partition unknown' to review unknown entities[/dim]"
            )
        console.print(f"Snapshot: [blue]{escape(str(session.snapshot_path))}[/blue]")

        if not ok:
            raise AnalysisFailure(f"{session.analyzer.get_name()} run did not complete")
