"""Indexing-related exceptions: snapshot access, identity consistency, malformed records."""

from pathlib import Path
from typing import Optional

from .base import FlowDeltaError


class IndexingError(FlowDeltaError):
    """Base class for errors raised while building or reading trace indices."""

    pass


class SnapshotAccessError(IndexingError):
    """Raised when a snapshot or index artifact cannot be opened or read."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access snapshot data: {filepath}",
            details={"filepath": filepath, "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class IdentityMismatchError(IndexingError):
    """Raised when the local id declared in a record differs from the indexed one."""

    def __init__(self, global_id: int, expected_local_id: int, found_local_id: Optional[int]):
        super().__init__(
            f"Identity index is inconsistent for global id {global_id}",
            details={
                "expected_local_id": expected_local_id,
                "found_local_id": found_local_id,
            },
        )
        self.global_id = global_id
        self.expected_local_id = expected_local_id
        self.found_local_id = found_local_id


class MalformedRequestError(IndexingError):
    """Raised when a request record lacks data required by the caller."""

    def __init__(self, global_id: int, reason: str):
        super().__init__(
            f"Malformed request record for global id {global_id}",
            details={"reason": reason},
        )
        self.global_id = global_id
        self.reason = reason
