"""Shared CLI helpers."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ..config import AnalysisConfig, load_config
from ..exceptions import FlowDeltaError
from ..logging_config import apply_verbosity

console = Console()


def resolve_config(
    config: Optional[Path] = None,
    mutation_threshold: Optional[float] = None,
    dont_enforce_one_to_n: Optional[bool] = None,
    workers: Optional[int] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> AnalysisConfig:
    """Build configuration from CLI options and apply its logging verbosity."""
    overrides = {}
    if mutation_threshold is not None:
        overrides["mutation_threshold"] = mutation_threshold
    if dont_enforce_one_to_n:
        overrides["dont_enforce_one_to_n"] = True
    if workers is not None:
        overrides["workers"] = workers
    settings = load_config(config_file=config, verbose=verbose, quiet=quiet, **overrides)
    apply_verbosity(settings.verbosity)
    return settings


@contextmanager
def cli_errors(logger: logging.Logger, verbose: bool = False) -> Iterator[None]:
    """Turn errors into a console message and a non-zero exit code."""
    try:
        yield
    except typer.Exit:
        raise
    except FlowDeltaError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        logger.info("Analysis interrupted by user")
        console.print("\n[yellow]Analysis interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error during analysis")
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)
