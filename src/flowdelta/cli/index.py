"""Index command: build request indices and the clusterer feature matrix."""

from pathlib import Path
from typing import Optional

import typer

from ..api import index_snapshots
from ..logging_config import setup_logging
from ..traces.layout import IndexPaths
from . import app
from ._common import cli_errors, console


@app.command()
def index(
    snapshot0: Path = typer.Option(
        ..., "--snapshot0", "-0", help="Baseline-period request graphs", exists=True, dir_okay=False
    ),
    snapshot1: Optional[Path] = typer.Option(
        None, "--snapshot1", "-1", help="Problem-period request graphs", exists=True, dir_okay=False
    ),
    output_dir: Path = typer.Option(..., "--output-dir", "-o", help="Directory for all output"),
    reconvert: bool = typer.Option(
        False, "--reconvert", help="Re-index even if a previous index exists"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
):
    """
    Index snapshot files and write the edge-latency feature matrix.

    [bold cyan]Examples:[/bold cyan]

      flowdelta index -0 before.dot -1 after.dot -o out

      flowdelta index -0 before.dot -1 after.dot -o out --reconvert
    """
    logger = setup_logging(verbose=verbose)
    with cli_errors(logger, verbose):
        summary = index_snapshots(snapshot0, snapshot1, output_dir, reconvert=reconvert)
        root = IndexPaths.for_output_dir(output_dir).root
        if summary is None:
            console.print(
                f"[yellow]Index already present in {root}.[/yellow] "
                "Pass [bold]--reconvert[/bold] to rebuild it."
            )
            return
        for snapshot, count in sorted(summary.requests_per_snapshot.items()):
            console.print(f"Snapshot {snapshot}: [bold]{count}[/bold] requests")
        console.print(
            f"[green]Indexed {summary.total_requests} requests[/green] with "
            f"{summary.edge_columns} distinct edges into {root}"
        )
