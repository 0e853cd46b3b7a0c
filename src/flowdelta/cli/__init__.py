"""CLI entry point; registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="flowdelta",
    help="flowdelta - rank request-flow changes between a baseline and a problem period",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _show_version(value: bool):
    if value:
        console.print(f"[bold cyan]flowdelta[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False, "--version", help="Show version and exit", callback=_show_version, is_eager=True
    ),
):
    pass


# Import subcommands to register them
from .index import index as _index  # noqa: F401, E402
from .compare import compare as _compare  # noqa: F401, E402
from .clusters import clusters as _clusters  # noqa: F401, E402
from .distribution import distribution as _distribution  # noqa: F401, E402


def main():
    app()


__all__ = ["app", "main"]
