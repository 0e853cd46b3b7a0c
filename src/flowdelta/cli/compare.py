"""Compare command: classify clusters and write ranked mutation reports."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..api import compare as run_compare
from ..api import index_snapshots
from ..clusters.ranking import ViewName
from ..logging_config import setup_logging
from . import app
from ._common import cli_errors, console, resolve_config

_TOP_N = 10


@app.command()
def compare(
    snapshot0: Path = typer.Option(
        ..., "--snapshot0", "-0", help="Baseline-period request graphs", exists=True, dir_okay=False
    ),
    snapshot1: Path = typer.Option(
        ..., "--snapshot1", "-1", help="Problem-period request graphs", exists=True, dir_okay=False
    ),
    output_dir: Path = typer.Option(..., "--output-dir", "-o", help="Directory for all output"),
    mutation_threshold: Optional[float] = typer.Option(
        None, "--mutation-threshold", "-t", help="Mutation threshold in percent (default 50)"
    ),
    dont_enforce_one_to_n: bool = typer.Option(
        False,
        "--dont-enforce-one-to-n",
        help="Do not require one originator per mutation and one mutation per originator",
    ),
    distance_matrix: Optional[Path] = typer.Option(
        None, "--distance-matrix", help="Precomputed cluster distance matrix", exists=True
    ),
    reconvert: bool = typer.Option(False, "--reconvert", help="Re-index the snapshot files"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML configuration file"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, max=32),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
):
    """
    Compare clusters between the baseline and problem period.

    Expects the clusterer outputs (clusters.dat, input_vec_to_global_ids.dat)
    in OUTPUT_DIR/convert_data. Indexes the snapshots first if needed.

    [bold cyan]Examples:[/bold cyan]

      flowdelta compare -0 before.dot -1 after.dot -o out

      flowdelta compare -0 before.dot -1 after.dot -o out -t 25 --dont-enforce-one-to-n
    """
    logger = setup_logging(verbose=verbose)
    with cli_errors(logger, verbose):
        settings = resolve_config(
            config=config,
            mutation_threshold=mutation_threshold,
            dont_enforce_one_to_n=dont_enforce_one_to_n,
            workers=workers,
            verbose=verbose,
        )
        index_snapshots(snapshot0, snapshot1, output_dir, reconvert=reconvert)
        report = run_compare(
            snapshot0, snapshot1, output_dir, config=settings, distance_matrix=distance_matrix
        )

        ranked = report.views[ViewName.UNWEIGHTED_COMBINED]
        if not ranked:
            console.print("[green]No structural mutations or response-time changes found.[/green]")
        else:
            table = Table(title="Top ranked mutations")
            table.add_column("Rank", justify="right")
            table.add_column("Cluster", justify="right")
            table.add_column("Type")
            table.add_column("Cost", justify="right")
            table.add_column("Originators")
            for rank, entry in enumerate(ranked[:_TOP_N], 1):
                table.add_row(
                    str(rank),
                    str(entry.cluster_id),
                    entry.specific_label,
                    f"{entry.cost:.2f}",
                    ", ".join(str(c) for c in entry.originators),
                )
            console.print(table)

        console.print(f"Reports written to [bold]{output_dir}[/bold] ({len(report.files)} files)")
