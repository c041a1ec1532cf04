"""CLI entry point: registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="ormlens",
    help="ormlens - find and curate ORM usage in Python codebases",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

entity_app = typer.Typer(help="Add, remove and move entities", no_args_is_help=True)
operation_app = typer.Typer(help="Add, remove and move operations", no_args_is_help=True)
argument_app = typer.Typer(help="Add, remove and move arguments", no_args_is_help=True)

app.add_typer(entity_app, name="entity")
app.add_typer(operation_app, name="operation")
app.add_typer(argument_app, name="argument")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]ormlens[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def callback(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Workspace root (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """
    Discover entities, operations and arguments of ORM code.

    [bold cyan]Examples:[/bold cyan]

      ormlens analyze

      ormlens -C /path/to/project analyze --analyzer django

      ormlens show --partition unknown

      ormlens annotate full-scan
    """
    setup_logging(verbose=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["path"] = (path or Path.cwd()).resolve()
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# Import subcommands to register them
from .analyze import analyze as _analyze  # noqa: F401, E402
from .curate import annotate as _annotate, note as _note  # noqa: F401, E402
from .show import show as _show  # noqa: F401, E402
from .stats import stats as _stats  # noqa: F401, E402


def main() -> None:
    app()
