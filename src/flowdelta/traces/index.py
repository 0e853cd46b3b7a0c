"""Trace indexing and globally consistent feature encoding.

One sequential scan per snapshot file (snapshot 0 first) produces:

  s<N>_request_index.dat            <local id> <byte offset of header>
  global_ids_to_local_ids.dat       <global id> <local id> <snapshot>
  global_req_edge_latencies.dat     one row per global id:
                                    <latency> (<avg edge latency> <count>)*
  global_req_edge_columns.dat       <column> <edge name>, columns start at 2
  global_edge_based_avg_latencies.dat
                                    <edge> <s0 avg> <s0 count> <s1 avg> <s1 count>
  s<N>_edge_based_indiv_latencies.dat
                                    sparse triplets <column> <rank> <latency>

Global ids start at 1 and increase across snapshot 0 then snapshot 1 with no
gaps; other components rely on that ordering. Feature columns are allocated
in first-seen order and never renumbered, so rows of every request stay
positionally comparable. Rows are padded in a second pass because the final
column count is only known after the last request has been scanned.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable, Optional

from ..exceptions import AnalysisCancelled, IndexingError, SnapshotAccessError
from ..file_ops import atomic_write, remove_files, require_readable
from ..logging_config import get_logger
from .decoder import RECORD_TERMINATOR, DotRequestDecoder, RequestDecoder, match_header
from .layout import IndexPaths
from .models import (
    FIRST_EDGE_COLUMN,
    EdgeAggregate,
    EdgeSample,
    FeatureRow,
    TraceIndex,
)

logger = get_logger(__name__)

PADDING_CELL = "0.0000 0"


@dataclass
class _PendingRecord:
    local_id: int
    latency: float
    offset: int
    lines: list[str] = field(default_factory=list)


@dataclass
class IndexSummary:
    """Counts reported after a full indexing run."""

    requests_per_snapshot: dict[int, int] = field(default_factory=dict)
    edge_columns: int = 0

    @property
    def total_requests(self) -> int:
        return sum(self.requests_per_snapshot.values())


class TraceIndexBuilder:
    """Builds request indices, the identity index and the feature matrix.

    The builder owns all encoding state (column numbering, global id
    counter, edge aggregates); nothing is kept at module level.
    """

    def __init__(
        self,
        snapshot0_file: Path,
        snapshot1_file: Optional[Path],
        paths: IndexPaths,
        decoder: Optional[RequestDecoder] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.snapshot_files: dict[int, Path] = {0: Path(snapshot0_file)}
        if snapshot1_file is not None:
            self.snapshot_files[1] = Path(snapshot1_file)
        self.paths = paths
        self._decoder = decoder or DotRequestDecoder()
        self._cancel_event = cancel_event

        self.columns: dict[str, int] = {}
        self.next_column = FIRST_EDGE_COLUMN
        self.next_global_id = 1
        self.edge_aggregates: dict[str, EdgeAggregate] = {}
        self._values_seen: dict[str, list[int]] = {}

        self._identity_fh: Optional[IO[str]] = None
        self._rows_fh: Optional[IO[str]] = None

    @property
    def snapshots(self) -> tuple[int, ...]:
        return tuple(sorted(self.snapshot_files))

    @property
    def edge_column_count(self) -> int:
        return self.next_column - FIRST_EDGE_COLUMN

    def outputs_exist(self) -> bool:
        """True if every artifact of a previous run is present."""
        return all(p.exists() for p in self.paths.index_artifacts(self.snapshots))

    def parse_requests(self) -> IndexSummary:
        """Index every snapshot and write all artifacts.

        Raises:
            SnapshotAccessError: If a snapshot file is missing or unreadable
            IndexingError: On inconsistent records (duplicate local ids)
            AnalysisCancelled: If cancellation was requested between snapshots
        """
        for snapshot_file in self.snapshot_files.values():
            require_readable(snapshot_file)

        self.paths.root.mkdir(parents=True, exist_ok=True)
        removed = remove_files(
            *self.paths.index_artifacts((0, 1)), self.paths.feature_rows_temp
        )
        for path in removed:
            logger.debug("Deleted old %s", path)

        summary = IndexSummary()
        with ExitStack() as stack:
            self._identity_fh = stack.enter_context(atomic_write(self.paths.identity))
            self._rows_fh = stack.enter_context(open(self.paths.feature_rows_temp, "w", encoding="utf-8"))
            try:
                for snapshot in self.snapshots:
                    self._checkpoint(f"snapshot {snapshot}")
                    index = self.build_index(self.snapshot_files[snapshot], snapshot)
                    summary.requests_per_snapshot[snapshot] = len(index)
            finally:
                self._identity_fh = None
                self._rows_fh = None

        self.normalize_rows()
        self._write_edge_columns()
        self._write_edge_aggregates()

        summary.edge_columns = self.edge_column_count
        logger.info(
            "Indexed %d requests with %d distinct edges", summary.total_requests, summary.edge_columns
        )
        return summary

    def build_index(self, snapshot_file: Path, snapshot: int) -> TraceIndex:
        """Scan one snapshot file and index every request record in it."""
        if snapshot not in (0, 1):
            raise IndexingError(f"Invalid snapshot {snapshot}", details={"snapshot": snapshot})
        require_readable(snapshot_file)

        index = TraceIndex(snapshot=snapshot)
        try:
            with ExitStack() as stack:
                source = stack.enter_context(open(snapshot_file, "rb"))
                index_fh = stack.enter_context(atomic_write(self.paths.request_index(snapshot)))
                triplet_fh = stack.enter_context(atomic_write(self.paths.indiv_latencies(snapshot)))

                for record in self._iter_records(source):
                    self._handle_record(record, snapshot, index, index_fh, triplet_fh)
        except OSError as e:
            raise SnapshotAccessError(snapshot_file, str(e))

        logger.info("Snapshot %d: indexed %d requests from %s", snapshot, len(index), snapshot_file)
        return index

    def encode_feature_row(
        self, request_latency: float, edge_samples: Iterable[EdgeSample]
    ) -> FeatureRow:
        """Encode one request against the global column numbering.

        New edge names get the next free column in first-seen order. Repeated
        edges inside the request are averaged. Columns between the previous
        used column and the next one are zero-filled.
        """
        per_column: dict[int, EdgeAggregate] = {}
        for sample in edge_samples:
            column = self.columns.get(sample.name)
            if column is None:
                column = self.next_column
                self.columns[sample.name] = column
                self.next_column += 1
            per_column.setdefault(column, EdgeAggregate()).add(sample.latency, 0)

        row = FeatureRow(request_latency=request_latency)
        previous = FIRST_EDGE_COLUMN - 1
        for column in sorted(per_column):
            for _gap in range(previous + 1, column):
                row.cells.append((0.0, 0))
            agg = per_column[column]
            row.cells.append((agg.avg_latency[0], agg.count[0]))
            previous = column

        if self._rows_fh is not None:
            self._rows_fh.write(row.format() + "\n")
        return row

    def normalize_rows(self) -> None:
        """Pad every temporary row to the final column count."""
        total = self.edge_column_count
        try:
            with open(self.paths.feature_rows_temp, encoding="utf-8") as src, atomic_write(
                self.paths.feature_rows
            ) as dst:
                for line in src:
                    tokens = line.split()
                    if not tokens:
                        continue
                    cells = (len(tokens) - 1) // 2
                    padding = [PADDING_CELL] * (total - cells)
                    dst.write(" ".join([line.rstrip("\n")] + padding) + "\n")
        except OSError as e:
            raise SnapshotAccessError(self.paths.feature_rows_temp, str(e))
        self.paths.feature_rows_temp.unlink(missing_ok=True)

    # ── Internals ───────────────────────────────────────────────────────

    def _checkpoint(self, where: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise AnalysisCancelled(where)

    def _iter_records(self, source: IO[bytes]):
        """Yield header-delimited records with the byte offset of their header."""
        offset = 0
        current: Optional[_PendingRecord] = None
        for raw in source:
            line = raw.decode("utf-8", errors="replace")
            header = match_header(line)
            if header is not None:
                if current is not None:
                    yield current
                current = _PendingRecord(header[0], header[1], offset, [line])
            elif current is not None:
                current.lines.append(line)
                if RECORD_TERMINATOR in line:
                    yield current
                    current = None
            offset += len(raw)
        if current is not None:
            yield current

    def _handle_record(
        self,
        record: _PendingRecord,
        snapshot: int,
        index: TraceIndex,
        index_fh: IO[str],
        triplet_fh: IO[str],
    ) -> None:
        if record.local_id in index.offsets:
            raise IndexingError(
                f"Duplicate local id {record.local_id} in snapshot {snapshot}",
                details={"local_id": record.local_id, "snapshot": snapshot},
            )
        if self._identity_fh is None:
            raise IndexingError("Identity index is not open; use parse_requests()")

        index.offsets[record.local_id] = record.offset
        index_fh.write(f"{record.local_id} {record.offset}\n")
        self._identity_fh.write(f"{self.next_global_id} {record.local_id} {snapshot}\n")
        self.next_global_id += 1

        decoded = self._decoder.decode("".join(record.lines), include_semantic_labels=True)
        samples = decoded.edge_samples(snapshot)
        self.encode_feature_row(record.latency, samples)

        for sample in samples:
            self.edge_aggregates.setdefault(sample.name, EdgeAggregate()).add(
                sample.latency, snapshot
            )
            self._write_triplet(sample, triplet_fh)

    def _write_triplet(self, sample: EdgeSample, triplet_fh: IO[str]) -> None:
        # Sparse matrices carry no zeros
        if sample.latency == 0:
            return
        seen = self._values_seen.setdefault(sample.name, [0, 0])
        seen[sample.snapshot] += 1
        column = self.columns[sample.name]
        triplet_fh.write(f"{column} {seen[sample.snapshot]} {sample.latency:f}\n")

    def _ordered_edges(self) -> list[tuple[int, str]]:
        return sorted((column, name) for name, column in self.columns.items())

    def _write_edge_columns(self) -> None:
        with atomic_write(self.paths.edge_columns) as fh:
            for column, name in self._ordered_edges():
                fh.write(f"{column} {name}\n")

    def _write_edge_aggregates(self) -> None:
        with atomic_write(self.paths.edge_aggregates) as fh:
            for _column, name in self._ordered_edges():
                agg = self.edge_aggregates.get(name, EdgeAggregate())
                fh.write(
                    f"{name} {agg.avg_latency[0]:.5f} {agg.count[0]} "
                    f"{agg.avg_latency[1]:.5f} {agg.count[1]}\n"
                )
