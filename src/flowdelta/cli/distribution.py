"""Distribution command: requests per cluster within a latency range."""

from pathlib import Path

import typer
from rich.table import Table

from ..api import cluster_distribution
from ..logging_config import setup_logging
from . import app
from ._common import cli_errors, console


@app.command()
def distribution(
    output_dir: Path = typer.Option(..., "--output-dir", "-o", help="Directory of a previous run"),
    min_latency: float = typer.Option(0.0, "--min", help="Minimum request latency"),
    max_latency: float = typer.Option(100000.0, "--max", help="Maximum request latency"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
):
    """
    Count requests per cluster whose latency lies in [MIN, MAX].

    Reads convert_data/global_ids_to_cluster_ids.dat written by
    [bold]compare[/bold] or [bold]clusters[/bold].
    """
    logger = setup_logging(verbose=verbose)
    with cli_errors(logger, verbose):
        result = cluster_distribution(output_dir, min_latency, max_latency)
        if not result.frequencies:
            console.print("[yellow]No requests in this latency range.[/yellow]")
            return
        table = Table(title=f"Requests with latency in [{min_latency:g}, {max_latency:g}]")
        table.add_column("Cluster", justify="right")
        table.add_column("Requests", justify="right")
        table.add_column("Avg. latency", justify="right")
        for cluster_id, count in result.by_cluster():
            table.add_row(str(cluster_id), str(count), f"{result.average_latency(cluster_id):.2f}")
        console.print(table)
