"""Shared test fixtures: small snapshot files and indexed output directories."""

from pathlib import Path

import pytest

from flowdelta.traces.index import TraceIndexBuilder
from flowdelta.traces.layout import IndexPaths


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def render_record(local_id, latency, nodes, edges):
    """Text of one request record.

    nodes: [(node_id, label)], labels use a literal backslash-n separator
    edges: [(src_id, dest_id, latency)]
    """
    lines = [f"# {local_id}  R: {latency}", "Begin Digraph {"]
    for node_id, label in nodes:
        lines.append(f'{node_id} [label="{label}"]')
    for src, dest, edge_latency in edges:
        lines.append(f'{src} -> {dest} [label="R: {edge_latency} us"]')
    lines.append("}")
    return "\n".join(lines) + "\n"


def ab_record(local_id, latency, ab_latency):
    return render_record(
        local_id,
        latency,
        [("1.1", "A\\nDEFAULT"), ("1.2", "B\\nDEFAULT")],
        [("1.1", "1.2", ab_latency)],
    )


def abc_record(local_id, latency, ab_latency, bc_latency):
    return render_record(
        local_id,
        latency,
        [("1.1", "A\\nDEFAULT"), ("1.2", "B\\nDEFAULT"), ("1.3", "C\\nDEFAULT")],
        [("1.1", "1.2", ab_latency), ("1.2", "1.3", bc_latency)],
    )


AB = "A\\nDEFAULT->B\\nDEFAULT"
BC = "B\\nDEFAULT->C\\nDEFAULT"


@pytest.fixture
def ab_snapshots(tmp_path):
    """Baseline of three A->B requests, problem period of one A->B->C request."""
    s0 = tmp_path / "s0.dot"
    s1 = tmp_path / "s1.dot"
    s0.write_text(ab_record(1, 10, 5) + ab_record(2, 12, 6) + ab_record(3, 11, 7))
    s1.write_text(abc_record(1, 40, 8, 20))
    return s0, s1


@pytest.fixture
def indexed_ab(tmp_path, ab_snapshots):
    """The A->B / A->B->C snapshots indexed and split into two clusters."""
    s0, s1 = ab_snapshots
    output_dir = tmp_path / "out"
    paths = IndexPaths.for_output_dir(output_dir)
    TraceIndexBuilder(s0, s1, paths).parse_requests()
    paths.clusters.write_text("1\n2\n")
    paths.input_vec_to_global_ids.write_text("1 2 3\n4\n")
    return s0, s1, output_dir, paths


def write_clusters(paths: IndexPaths, clusters, input_vecs):
    """Write clusterer outputs: clusters as input-vector lists, vectors as global-id lists."""
    paths.clusters.write_text("".join(" ".join(map(str, c)) + "\n" for c in clusters))
    paths.input_vec_to_global_ids.write_text(
        "".join(" ".join(map(str, v)) + "\n" for v in input_vecs)
    )


@pytest.fixture
def shifted_snapshots(tmp_path):
    """Same A->B shape in both periods, problem-period response times much slower."""
    s0 = tmp_path / "s0.dot"
    s1 = tmp_path / "s1.dot"
    s0.write_text("".join(ab_record(i, 10 + i, 5 + i % 3) for i in range(1, 13)))
    s1.write_text("".join(ab_record(i, 100 + i, 50 + i % 3) for i in range(1, 13)))
    return s0, s1


def read_lines(path: Path):
    return path.read_text().splitlines()
