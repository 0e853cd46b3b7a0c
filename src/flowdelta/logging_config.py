"""
Logging configuration for flowdelta.

Terminal output goes through a rich handler on stderr so that report tables
printed on stdout stay clean. The level follows the ``verbosity`` setting of
``AnalysisConfig``; the CLI ``--verbose`` flag maps to ``"verbose"``.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "flowdelta"

VERBOSITY_LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
    verbosity: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging with a rich handler for colored output.

    Args:
        verbose: Enable DEBUG level logging
        quiet: Suppress all but ERROR level logging
        log_file: Optional file path to write logs to
        verbosity: One of "quiet", "normal", "verbose"; overrides the flags

    Returns:
        Configured logger instance for flowdelta
    """
    if verbosity is None:
        verbosity = "quiet" if quiet else "verbose" if verbose else "normal"
    level = VERBOSITY_LEVELS[verbosity]
    debug = level == logging.DEBUG

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=debug,
            markup=False,
            show_time=True,
            show_path=debug,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=handlers)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    return logger


def apply_verbosity(verbosity: str) -> None:
    """Adjust the flowdelta logger level after configuration has been loaded."""
    logging.getLogger(LOGGER_NAME).setLevel(VERBOSITY_LEVELS[verbosity])


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger namespaced under ``flowdelta`` (e.g. ``flowdelta.traces.index``)."""
    if name is None:
        return logging.getLogger(LOGGER_NAME)
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
