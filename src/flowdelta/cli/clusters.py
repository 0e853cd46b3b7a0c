"""Clusters command: print cluster statistics without comparing periods."""

from pathlib import Path
from typing import Optional

import typer

from ..api import print_clusters
from ..logging_config import setup_logging
from . import app
from ._common import cli_errors, console, resolve_config


@app.command()
def clusters(
    snapshot0: Path = typer.Option(
        ..., "--snapshot0", "-0", help="Baseline-period request graphs", exists=True, dir_okay=False
    ),
    snapshot1: Optional[Path] = typer.Option(
        None, "--snapshot1", "-1", help="Problem-period request graphs", exists=True, dir_okay=False
    ),
    output_dir: Path = typer.Option(..., "--output-dir", "-o", help="Directory for all output"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
):
    """
    Write cluster statistics and every cluster representative.

    [bold cyan]Examples:[/bold cyan]

      flowdelta clusters -0 before.dot -1 after.dot -o out
    """
    logger = setup_logging(verbose=verbose)
    with cli_errors(logger, verbose):
        settings = resolve_config(config=config, verbose=verbose)
        files = print_clusters(snapshot0, snapshot1, output_dir, config=settings)
        for path in files:
            console.print(f"Wrote [bold]{path}[/bold]")
