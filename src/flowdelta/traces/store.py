"""Loaded view of the index artifacts written by ``TraceIndexBuilder``."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from ..exceptions import IndexingError, SnapshotAccessError
from ..file_ops import require_readable
from ..logging_config import get_logger
from .layout import IndexPaths
from .models import EdgeAggregate, RequestLocation, TraceIndex

logger = get_logger(__name__)


class TraceStore:
    """Identity index, per-snapshot offset indices and edge aggregates.

    Loading is lazy and happens once, guarded by a lock, so the store can be
    shared by the statistics worker threads.
    """

    def __init__(self, paths: IndexPaths, snapshot_files: dict[int, Path]):
        self.paths = paths
        self.snapshot_files = {s: Path(f) for s, f in snapshot_files.items()}
        self._lock = threading.Lock()
        self._loaded = False

        self._locations: list[RequestLocation] = []
        self._indices: dict[int, TraceIndex] = {}
        self._edge_aggregates: dict[str, EdgeAggregate] = {}
        self._totals = [0, 0]

    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._load()
            self._loaded = True

    def _load(self) -> None:
        for snapshot in self.snapshot_files:
            self._indices[snapshot] = self._read_offsets(snapshot)

        locations: list[RequestLocation] = []
        with open(require_readable(self.paths.identity), encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, 1):
                tokens = line.split()
                if not tokens:
                    continue
                try:
                    global_id, local_id, snapshot = (int(t) for t in tokens[:3])
                except ValueError:
                    raise IndexingError(
                        f"Corrupt identity index line {line_no}",
                        details={"line": line.strip()},
                    )
                if global_id != len(locations) + 1:
                    raise IndexingError(
                        "Global ids are not dense",
                        details={"expected": len(locations) + 1, "found": global_id},
                    )
                locations.append(RequestLocation(local_id, snapshot))
                self._totals[snapshot] += 1
        self._locations = locations

        if self.paths.edge_aggregates.exists():
            with open(self.paths.edge_aggregates, encoding="utf-8") as fh:
                for line_no, line in enumerate(fh, 1):
                    if not line.strip():
                        continue
                    # Edge names may contain spaces; the four numbers are always last.
                    try:
                        fields = line.rstrip("\n").rsplit(None, 4)
                        name, s0_avg, s0_count, s1_avg, s1_count = fields
                        aggregate = EdgeAggregate(
                            avg_latency=[float(s0_avg), float(s1_avg)],
                            count=[int(s0_count), int(s1_count)],
                        )
                    except ValueError:
                        raise IndexingError(
                            f"Corrupt edge aggregates line {line_no}",
                            details={"line": line.strip()},
                        )
                    self._edge_aggregates[name] = aggregate

        logger.debug(
            "Loaded %d requests (%d baseline, %d problem period)",
            len(locations),
            self._totals[0],
            self._totals[1],
        )

    def _read_offsets(self, snapshot: int) -> TraceIndex:
        index = TraceIndex(snapshot=snapshot)
        with open(require_readable(self.paths.request_index(snapshot)), encoding="utf-8") as fh:
            for line in fh:
                tokens = line.split()
                if len(tokens) >= 2:
                    index.offsets[int(tokens[0])] = int(tokens[1])
        return index

    # ── Queries ─────────────────────────────────────────────────────────

    def __len__(self) -> int:
        self.ensure_loaded()
        return len(self._locations)

    def resolve(self, global_id: int) -> RequestLocation:
        """Map a global id to its (local id, snapshot)."""
        self.ensure_loaded()
        if not 1 <= global_id <= len(self._locations):
            raise IndexingError(
                f"Unknown global id {global_id}",
                details={"known": f"1..{len(self._locations)}"},
            )
        return self._locations[global_id - 1]

    def offset_of(self, location: RequestLocation) -> int:
        self.ensure_loaded()
        index = self._indices.get(location.snapshot)
        offset = index.offset_of(location.local_id) if index is not None else None
        if offset is None:
            raise IndexingError(
                f"No offset for local id {location.local_id} in snapshot {location.snapshot}",
                details={"local_id": location.local_id, "snapshot": location.snapshot},
            )
        return offset

    def snapshot_file(self, snapshot: int) -> Path:
        try:
            return self.snapshot_files[snapshot]
        except KeyError:
            raise SnapshotAccessError(Path(f"<snapshot {snapshot}>"), "No file registered")

    def snapshot_totals(self) -> tuple[int, int]:
        """Total number of requests in each snapshot."""
        self.ensure_loaded()
        return self._totals[0], self._totals[1]

    @property
    def edge_aggregates(self) -> dict[str, EdgeAggregate]:
        self.ensure_loaded()
        return self._edge_aggregates

    def seen_in_snapshot(self, edge_name: str, snapshot: int) -> bool:
        agg = self.edge_aggregates.get(edge_name)
        return agg is not None and agg.count[snapshot] > 0


def open_store(
    paths: IndexPaths, snapshot0_file: Path, snapshot1_file: Optional[Path] = None
) -> TraceStore:
    files = {0: Path(snapshot0_file)}
    if snapshot1_file is not None:
        files[1] = Path(snapshot1_file)
    return TraceStore(paths, files)
