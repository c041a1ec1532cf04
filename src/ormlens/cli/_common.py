"""Shared CLI helpers."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from ..config import load_config
from ..exceptions import OrmLensError, UserInputError
from ..logging_config import get_logger
from ..session import WorkspaceSession

console = Console()

logger = get_logger(__name__)


@contextmanager
def handle_errors(action: str) -> Iterator[None]:
    """Map exceptions raised inside a command to messages and exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except OrmLensError as e:
        logger.debug(f"{action} failed: {e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        logger.info(f"{action} interrupted by user")
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception(f"Unexpected error during {action}")
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


@contextmanager
def open_session(ctx: typer.Context, **overrides) -> Iterator[WorkspaceSession]:
    """Build a session from the global options plus command overrides."""
    state = ctx.obj
    config = load_config(
        root=state["path"],
        config_file=state["config"],
        verbose=state["verbose"],
        quiet=state["quiet"],
        **overrides,
    )
    session = WorkspaceSession(state["path"], config)
    try:
        yield session
    finally:
        session.close()


@contextmanager
def curation_session(ctx: typer.Context) -> Iterator[WorkspaceSession]:
    """A session with the snapshot loaded; curation never scans, so no cache."""
    with open_session(ctx, cache_enabled=False) as session:
        session.require_result()
        yield session


def to_index(position: Optional[int], what: str) -> Optional[int]:
    """Convert a 1-based position as printed by ``show`` to a list index."""
    if position is None:
        return None
    if position < 1:
        raise UserInputError(f"{what} numbers start at 1")
    return position - 1
