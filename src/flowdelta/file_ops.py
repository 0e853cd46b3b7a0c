"""
Safe file operations for flowdelta.

Artifacts are written to a temporary sibling and renamed into place so that
an aborted run never leaves a half-written index or report behind.
"""

import os
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from .exceptions import SnapshotAccessError


def require_readable(filepath: Path) -> Path:
    """
    Check that a required input file exists and can be read.

    Raises:
        SnapshotAccessError: If the file is missing or unreadable
    """
    if not filepath.is_file():
        raise SnapshotAccessError(filepath, "File does not exist")
    if not os.access(filepath, os.R_OK):
        raise SnapshotAccessError(filepath, "File is not readable")
    return filepath


@contextmanager
def atomic_write(filepath: Path, mode: str = "w", encoding: str = "utf-8") -> Generator[IO, None, None]:
    """
    Open a temporary file next to ``filepath`` and rename it on success.

    Args:
        filepath: Final destination
        mode: "w" for text or "wb" for binary
        encoding: Text encoding (ignored for binary mode)

    Raises:
        SnapshotAccessError: If the file cannot be written
    """
    filepath.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd, tmp_name = tempfile.mkstemp(dir=filepath.parent, prefix=f".{filepath.name}.", suffix=".tmp")
    except OSError as e:
        raise SnapshotAccessError(filepath, f"Write failed: {e}")

    tmp_path = Path(tmp_name)
    try:
        if "b" in mode:
            handle = os.fdopen(fd, mode)
        else:
            handle = os.fdopen(fd, mode, encoding=encoding, newline="\n")
        with handle:
            yield handle
        os.replace(tmp_path, filepath)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def remove_files(*paths: Path) -> list[Path]:
    """Delete the given files if present and return the ones removed."""
    removed = []
    for path in paths:
        try:
            path.unlink()
            removed.append(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            raise SnapshotAccessError(path, f"Could not delete: {e}")
    return removed
