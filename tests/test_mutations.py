"""Tests for mutation classification, costs, ranking and the comparison reports."""

import random

import pytest
from conftest import AB, BC, read_lines, render_record, write_clusters

from flowdelta.api import compare, index_snapshots, print_clusters
from flowdelta.clusters.distance import EdgeSetDistanceOracle, MatrixDistanceOracle
from flowdelta.clusters.models import (
    ClusterInfo,
    ComparisonResult,
    MutationRecord,
    MutationType,
    describe_mutation_types,
)
from flowdelta.clusters.mutations import (
    candidate_originators,
    classify_clusters,
    derive_mutation_records,
    structural_mutation_cost,
)
from flowdelta.clusters.ranking import ViewName, build_views, rank_records
from flowdelta.clusters.report import (
    ALL_CLUSTERS_FILE,
    CLUSTER_INFO_FILE,
    TESTS_RUN_INFO_FILE,
)
from flowdelta.config import AnalysisConfig
from flowdelta.exceptions import ClusterResolutionError, FlowDeltaError, InvalidConfigError
from flowdelta.traces.layout import IndexPaths
from flowdelta.traces.models import EdgeAggregate


def stats(label, means, sizes=(5, 5), reject=False, run=True):
    return ComparisonResult(
        comparison_id="cluster-1",
        label=label,
        test_run=run,
        reject_null=reject,
        p_value=0.001 if reject else 0.5,
        means=means,
        stddevs=(0.0, 0.0),
        sample_sizes=sizes,
    )


def info(cluster_id, freqs, edges=(), rt=(10.0, 10.0), edge_stats=None, rt_stats=None):
    return ClusterInfo(
        cluster_id=cluster_id,
        representative=cluster_id,
        frequencies=freqs,
        likelihoods=(0.0, 0.0),
        avg_response_times=rt,
        stddevs=(0.0, 0.0),
        edge_names=list(edges),
        edge_latency_stats=edge_stats or {},
        response_time_stats=rt_stats,
    )


def aggregates(**seen):
    """Edge name -> (count_s0, count_s1)."""
    return {
        name: EdgeAggregate(avg_latency=[1.0, 1.0], count=list(counts))
        for name, counts in seen.items()
    }


class TestClassification:
    """Tests for assigning mutation types to clusters."""

    def test_new_edge_is_structural(self):
        infos = {1: info(1, (10, 0), ["ab"]), 2: info(2, (5, 5), ["ab", "bc"])}
        classify_clusters(
            infos,
            aggregates(ab=(15, 5), bc=(0, 5)),
            EdgeSetDistanceOracle({1: ["ab"], 2: ["ab", "bc"]}),
            AnalysisConfig(),
            total_s1=5,
        )
        assert infos[2].is_structural_mutation
        assert infos[2].novel_edges == frozenset({"bc"})
        assert infos[2].originators == [1]
        assert not infos[1].is_structural_mutation

    def test_threshold_on_problem_period_excess(self):
        agg = aggregates(ab=(20, 20))
        oracle = EdgeSetDistanceOracle({1: ["ab"], 2: ["ab"]})
        infos = {1: info(1, (10, 2), ["ab"]), 2: info(2, (4, 8), ["ab"])}
        classify_clusters(infos, agg, oracle, AnalysisConfig(mutation_threshold=50), 10)
        # (8 - 4) / 8 = 50%
        assert infos[2].is_structural_mutation
        assert not infos[1].is_structural_mutation

        infos = {1: info(1, (10, 2), ["ab"]), 2: info(2, (4, 8), ["ab"])}
        classify_clusters(infos, agg, oracle, AnalysisConfig(mutation_threshold=60), 10)
        assert not infos[2].is_structural_mutation

    def test_no_problem_period_requests_never_structural(self):
        infos = {1: info(1, (10, 0), ["xy"])}
        classify_clusters(
            infos, aggregates(), EdgeSetDistanceOracle({1: ["xy"]}), AnalysisConfig(), 0
        )
        assert infos[1].mutation_types == frozenset({MutationType.NOT_INTERESTING})
        assert infos[1].mutation_type_label == "None"

    def test_response_time_change_needs_rejected_test(self):
        infos = {
            1: info(1, (10, 10), ["ab"], rt_stats=stats("rt", (10, 50), reject=True)),
            2: info(2, (10, 10), ["ab"], rt_stats=stats("rt", (10, 50), run=False)),
        }
        classify_clusters(
            infos,
            aggregates(ab=(20, 20)),
            EdgeSetDistanceOracle({1: ["ab"], 2: ["ab"]}),
            AnalysisConfig(),
            20,
        )
        assert infos[1].is_response_time_change
        assert not infos[2].is_response_time_change

    def test_one_to_n_keeps_nearest_originator_only(self):
        infos = {
            1: info(1, (10, 0), ["ab"]),
            2: info(2, (10, 0), ["ab"]),
            3: info(3, (0, 10), ["ab", "cd"]),
        }
        oracle = EdgeSetDistanceOracle({1: ["ab", "x"], 2: ["ab"], 3: ["ab", "cd"]})
        agg = aggregates(ab=(20, 10), cd=(0, 10))

        classify_clusters(infos, agg, oracle, AnalysisConfig(), 10)
        assert infos[3].originators == [2]

    def test_without_one_to_n_all_candidates_kept(self):
        infos = {
            1: info(1, (10, 0), ["ab"]),
            2: info(2, (10, 0), ["ab"]),
            3: info(3, (0, 10), ["ab", "cd"]),
        }
        oracle = EdgeSetDistanceOracle({1: ["ab", "x"], 2: ["ab"], 3: ["ab", "cd"]})
        classify_clusters(
            infos,
            aggregates(ab=(20, 10), cd=(0, 10)),
            oracle,
            AnalysisConfig(dont_enforce_one_to_n=True),
            10,
        )
        assert infos[3].originators == [2, 1]
        # 10 of 10 problem-period requests: originating by threshold alone
        assert infos[3].is_originating
        assert not infos[1].is_originating

    def test_originating_by_problem_period_share(self):
        infos = {
            1: info(1, (10, 6), ["ab"]),
            2: info(2, (0, 4), ["ab", "cd"]),
        }
        oracle = EdgeSetDistanceOracle({1: ["ab"], 2: ["ab", "cd"]})
        classify_clusters(infos, aggregates(ab=(10, 10), cd=(0, 4)), oracle, AnalysisConfig(), 10)

        # Cluster 1 holds 60% of the problem period
        assert infos[1].is_originating
        assert infos[2].is_structural_mutation
        # Cluster 2 holds 40%, below the threshold
        assert not infos[2].is_originating

    def test_new_cluster_structural_and_originating(self):
        infos = {1: info(1, (3, 0), ["ab"]), 2: info(2, (0, 1), ["ab", "bc"])}
        oracle = EdgeSetDistanceOracle({1: ["ab"], 2: ["ab", "bc"]})
        classify_clusters(infos, aggregates(ab=(3, 1), bc=(0, 1)), oracle, AnalysisConfig(), 1)

        assert infos[2].mutation_types == frozenset(
            {MutationType.STRUCTURAL_MUTATION, MutationType.ORIGINATING_CLUSTER}
        )
        assert infos[2].originators == [1]
        assert infos[1].mutation_types == frozenset({MutationType.NOT_INTERESTING})

    def test_candidate_originators_ties_by_id(self):
        infos = {
            1: info(1, (0, 5)),
            2: info(2, (3, 0)),
            3: info(3, (3, 0)),
            4: info(4, (0, 3)),
        }
        oracle = EdgeSetDistanceOracle({1: ["a"], 2: ["b"], 3: ["c"], 4: ["a"]})
        assert candidate_originators(1, infos, oracle) == [2, 3]

    def test_combined_labels(self):
        types = frozenset(
            {MutationType.RESPONSE_TIME_CHANGE, MutationType.STRUCTURAL_MUTATION}
        )
        assert describe_mutation_types(types) == "Structural mutation and Response time change"


class TestCosts:
    """Tests for structural and response-time costs."""

    def test_structural_cost_sums_differing_edges(self):
        cluster = info(
            1,
            (4, 6),
            edge_stats={
                "ab": stats("ab", (10.0, 25.0), sizes=(4, 6), reject=True),
                "bc": stats("bc", (3.0, 3.5), sizes=(4, 6)),
                "cd": stats("cd", (0.0, 7.0), sizes=(0, 3), run=False),
            },
        )
        cluster.novel_edges = frozenset({"cd"})
        assert structural_mutation_cost(cluster) == pytest.approx(15.0 + 7.0)
        assert structural_mutation_cost(cluster, weighted=True) == pytest.approx(15.0 * 6 + 7.0 * 3)

    def test_records_unrolled_per_type(self):
        cluster = info(5, (10, 10), rt=(20.0, 30.0))
        cluster.mutation_types = frozenset(
            {MutationType.STRUCTURAL_MUTATION, MutationType.RESPONSE_TIME_CHANGE}
        )
        cluster.originators = [2]
        records = derive_mutation_records(cluster)
        assert [r.unrolled_id for r in records] == ["5_s", "5_r"]
        assert records[0].originators == (2,)
        assert records[1].cost == pytest.approx(100.0)
        assert records[1].label == "Response time change"

    def test_not_interesting_cluster_has_no_records(self):
        cluster = info(1, (3, 0))
        cluster.mutation_types = frozenset({MutationType.NOT_INTERESTING})
        assert derive_mutation_records(cluster) == []


class TestRanking:
    """Tests for cost ordering and view construction."""

    def test_descending_cost_then_id_then_type(self):
        records = [
            MutationRecord(3, MutationType.RESPONSE_TIME_CHANGE, 5.0),
            MutationRecord(2, MutationType.RESPONSE_TIME_CHANGE, 10.0),
            MutationRecord(2, MutationType.STRUCTURAL_MUTATION, 10.0),
            MutationRecord(1, MutationType.STRUCTURAL_MUTATION, 20.0),
        ]
        ranked = rank_records(records)
        assert [r.unrolled_id for r in ranked] == ["1_s", "2_s", "2_r", "3_r"]

    def test_views_cover_every_file(self):
        first = info(1, (3, 0))
        first.mutation_types = frozenset({MutationType.NOT_INTERESTING})
        second = info(2, (0, 4), rt=(0.0, 40.0))
        second.mutation_types = frozenset(
            {MutationType.STRUCTURAL_MUTATION, MutationType.ORIGINATING_CLUSTER}
        )
        views = build_views({1: first, 2: second})

        assert set(views) == set(ViewName)
        assert [e.cluster_id for e in views[ViewName.NOT_INTERESTING]] == [1]
        assert [e.cluster_id for e in views[ViewName.ORIGINATING]] == [2]
        assert views[ViewName.ORIGINATING][0].specific_label == "Originating cluster"
        assert views[ViewName.RESPONSE_TIME] == []
        assert [e.specific_label for e in views[ViewName.UNWEIGHTED_COMBINED]] == [
            "Structural mutation"
        ]
        assert ViewName.WEIGHTED_COMBINED.filename == "weighted_combined_ranked_graphs.dot"


    def test_equal_costs_order_independent_of_insertion(self):
        def cluster(cluster_id):
            c = info(
                cluster_id,
                (10, 10),
                rt=(20.0, 30.0),
                edge_stats={"x": stats("x", (0.0, 100.0), run=False)},
            )
            c.novel_edges = frozenset({"x"})
            c.mutation_types = frozenset(
                {MutationType.STRUCTURAL_MUTATION, MutationType.RESPONSE_TIME_CHANGE}
            )
            return c

        shuffled = {cid: cluster(cid) for cid in (4, 2, 5, 1, 3)}
        ordered = {cid: cluster(cid) for cid in (1, 2, 3, 4, 5)}
        first = build_views(shuffled)
        second = build_views(shuffled)

        assert first == second
        assert first == build_views(ordered)
        assert [e.record.unrolled_id for e in first[ViewName.UNWEIGHTED_COMBINED]] == [
            f"{cid}_{kind}" for cid in range(1, 6) for kind in ("s", "r")
        ]
        assert {e.cost for e in first[ViewName.UNWEIGHTED_COMBINED]} == {100.0}

    def test_rank_records_ignores_input_order(self):
        records = [
            MutationRecord(cid, kind, 7.0)
            for cid in range(1, 6)
            for kind in (MutationType.STRUCTURAL_MUTATION, MutationType.RESPONSE_TIME_CHANGE)
        ]
        expected = rank_records(records)
        for seed in range(5):
            shuffled = list(records)
            random.Random(seed).shuffle(shuffled)
            assert rank_records(shuffled) == expected


class TestDistanceOracles:
    """Tests for distances between cluster representatives."""

    def test_matrix_from_file(self, tmp_path):
        path = tmp_path / "cluster_distance_matrix.dat"
        path.write_text("0 1 2\n1 0 3\n2 3 0\n")
        oracle = MatrixDistanceOracle.from_file(path)
        assert oracle.distance(1, 3) == 2.0
        assert oracle.distance(3, 2) == 3.0
        with pytest.raises(ClusterResolutionError):
            oracle.distance(1, 4)

    def test_non_square_matrix(self, tmp_path):
        path = tmp_path / "cluster_distance_matrix.dat"
        path.write_text("0 1 2\n1 0 3\n")
        with pytest.raises(InvalidConfigError) as exc_info:
            MatrixDistanceOracle.from_file(path)
        assert isinstance(exc_info.value, FlowDeltaError)
        assert exc_info.value.key == "distance_matrix"

    def test_edge_multiset_difference(self):
        oracle = EdgeSetDistanceOracle({1: ["ab", "ab", "bc"], 2: ["ab", "cd"]})
        assert oracle.distance(1, 2) == 3.0
        assert oracle.distance(1, 1) == 0.0
        with pytest.raises(ClusterResolutionError):
            oracle.distance(1, 9)


class TestComparisonReports:
    """End-to-end comparison over the A->B / A->B->C scenario."""

    def test_classification(self, indexed_ab):
        s0, s1, out, _paths = indexed_ab
        report = compare(s0, s1, out)
        first, second = report.infos[1], report.infos[2]

        assert first.mutation_types == frozenset({MutationType.NOT_INTERESTING})
        assert second.mutation_types == frozenset(
            {MutationType.STRUCTURAL_MUTATION, MutationType.ORIGINATING_CLUSTER}
        )
        assert second.originators == [1]
        assert second.novel_edges == frozenset({BC})
        assert AB not in second.novel_edges

    def test_costs(self, indexed_ab):
        s0, s1, out, _paths = indexed_ab
        report = compare(s0, s1, out)
        (unweighted,) = report.views[ViewName.UNWEIGHTED_STRUCTURAL]
        (weighted,) = report.views[ViewName.WEIGHTED_STRUCTURAL]
        assert unweighted.cost == pytest.approx(20.0)
        assert weighted.cost == pytest.approx(20.0)

    def test_without_one_to_n(self, indexed_ab):
        s0, s1, out, _paths = indexed_ab
        report = compare(s0, s1, out, dont_enforce_one_to_n=True)
        assert report.infos[2].mutation_type_label == "Structural mutation and Originating cluster"
        assert [e.cluster_id for e in report.views[ViewName.ORIGINATING]] == [2]

    def test_report_files(self, indexed_ab):
        s0, s1, out, paths = indexed_ab
        report = compare(s0, s1, out)

        names = {p.name for p in report.files}
        assert CLUSTER_INFO_FILE in names
        assert TESTS_RUN_INFO_FILE in names
        assert {v.filename for v in ViewName} <= names
        assert paths.cluster_membership.exists()

        info_lines = read_lines(out / CLUSTER_INFO_FILE)
        assert info_lines[0].startswith("cluster_id")
        assert "mutation_type" in info_lines[0]
        assert "Structural mutation" in info_lines[2]
        assert len(info_lines) == 3

        coverage = (out / TESTS_RUN_INFO_FILE).read_text()
        assert "could not be identified: 2 (1.00)" in coverage

    def test_ranked_graph_overlays(self, indexed_ab):
        s0, s1, out, _paths = indexed_ab
        compare(s0, s1, out)
        dump = (out / ViewName.UNWEIGHTED_STRUCTURAL.filename).read_text()

        assert dump.startswith("# 1  R: 40")
        assert "Cluster ID: 2" in dump
        assert "Specific Mutation Type: Structural mutation" in dump
        assert "Originating Clusters: 1" in dump
        assert "a: 0us / 8us" in dump
        assert "a: 0us / 20us" in dump
        assert (out / ViewName.RESPONSE_TIME.filename).read_text() == ""

        not_interesting = (out / ViewName.NOT_INTERESTING.filename).read_text()
        assert "Cluster ID: 1" in not_interesting
        assert "a: 6us / 0us" in not_interesting

    def test_explicit_distance_matrix(self, tmp_path, indexed_ab):
        s0, s1, out, _paths = indexed_ab
        matrix = tmp_path / "matrix.dat"
        matrix.write_text("0 4\n4 0\n")
        report = compare(s0, s1, out, distance_matrix=matrix)
        assert report.infos[2].originators == [1]

    def test_spaced_node_names_seen_in_both_periods(self, tmp_path):
        nodes = [("1.1", "Front end\\nDEFAULT"), ("1.2", "Back end\\nDEFAULT")]
        s0 = tmp_path / "s0.dot"
        s1 = tmp_path / "s1.dot"
        records = "".join(render_record(i, 10, nodes, [("1.1", "1.2", 5)]) for i in range(1, 11))
        s0.write_text(records)
        s1.write_text(records)
        out = tmp_path / "out"
        index_snapshots(s0, s1, out)
        write_clusters(IndexPaths.for_output_dir(out), [[1]], [list(range(1, 21))])

        cluster = compare(s0, s1, out).infos[1]
        assert cluster.novel_edges == frozenset()
        assert not cluster.is_structural_mutation
        assert not cluster.is_response_time_change

    def test_response_time_change_ranked(self, tmp_path, shifted_snapshots):
        s0, s1 = shifted_snapshots
        out = tmp_path / "out"
        index_snapshots(s0, s1, out)
        write_clusters(IndexPaths.for_output_dir(out), [[1]], [list(range(1, 25))])

        report = compare(s0, s1, out)
        cluster = report.infos[1]
        assert cluster.is_response_time_change
        assert not cluster.is_structural_mutation
        (entry,) = report.views[ViewName.RESPONSE_TIME]
        assert entry.cost == pytest.approx(1080.0)
        assert report.views[ViewName.UNWEIGHTED_STRUCTURAL] == []


class TestPrintClusters:
    """Tests for print mode."""

    def test_writes_statistics_and_representatives(self, indexed_ab):
        s0, s1, out, paths = indexed_ab
        files = print_clusters(s0, s1, out)

        assert out / CLUSTER_INFO_FILE in files
        header = read_lines(out / CLUSTER_INFO_FILE)[0]
        assert header.startswith("cluster_id")
        assert "mutation_type" not in header

        dump = (out / ALL_CLUSTERS_FILE).read_text()
        assert dump.count("Begin Digraph {") == 2
        assert "summary [" not in dump
        assert paths.cluster_membership.exists()

    def test_membership_reassignment(self, indexed_ab):
        s0, s1, out, paths = indexed_ab
        write_clusters(paths, [[1, 2]], [[1, 2, 3], [4]])
        print_clusters(s0, s1, out)
        assert read_lines(paths.cluster_membership) == [
            "1 1 10.000000",
            "2 1 12.000000",
            "3 1 11.000000",
            "4 1 40.000000",
        ]
