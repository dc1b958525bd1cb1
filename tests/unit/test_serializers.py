"""Tests for servicegraph.topology.serializers -- output schemas and sinks."""

from __future__ import annotations

import io
import json
import random

import pytest

from servicegraph.errors import InvalidGraphError
from servicegraph.models.graph import DynamicGraph, Edge
from servicegraph.topology.aggregator import EdgeAggregator
from servicegraph.topology.serializers import (
    SERIALIZERS,
    GraphFormat,
    MirroredSink,
    VizLayout,
    get_serializer,
    write_dot,
    write_flat,
    write_index_linked,
    write_nested,
    write_raw_json,
)

INGRESS = "istio-ingress.istio-system (unknown)"


@pytest.fixture()
def layout() -> VizLayout:
    return VizLayout(
        region_name="k8s-ist-1",
        external_node="INTERNET",
        clock=lambda: 1_700_000_000_000,
    )


@pytest.fixture()
def aggregator() -> EdgeAggregator:
    return EdgeAggregator(scale_factor=10.0, ingress_node=INGRESS)


def _render(fn, graph, aggregator, layout) -> bytes:
    sink = io.BytesIO()
    fn(graph, aggregator.aggregate(graph), sink, layout)
    return sink.getvalue()


def _shuffled(graph: DynamicGraph, seed: int) -> DynamicGraph:
    edges = list(graph.edges)
    random.Random(seed).shuffle(edges)
    return DynamicGraph(nodes=graph.nodes, edges=tuple(edges))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_every_format_registered(self):
        assert set(SERIALIZERS) == set(GraphFormat)

    def test_get_serializer_by_string(self):
        assert get_serializer("nested") is write_nested

    def test_get_serializer_unknown(self):
        with pytest.raises(ValueError, match="Unknown graph format"):
            get_serializer("svg")


# ---------------------------------------------------------------------------
# Index-linked
# ---------------------------------------------------------------------------


class TestIndexLinked:
    def test_node_count_and_index_bounds(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_index_linked, sample_graph, aggregator, layout))
        n = len(sample_graph.nodes)
        assert len(out["nodes"]) == n
        assert len(out["links"]) == len(sample_graph.edges)
        for link in out["links"]:
            assert 0 <= link["source"] < n
            assert 0 <= link["target"] < n

    def test_indexes_refer_to_sorted_node_list(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({"b", "a"}),
            edges=(Edge(source="b", target="a", labels={"reqs/sec": "1"}),),
        )
        out = json.loads(_render(write_index_linked, g, aggregator, layout))
        assert out == {
            "nodes": [{"name": "a"}, {"name": "b"}],
            "links": [{"source": 1, "target": 0, "labels": {"reqs/sec": "1"}}],
        }

    def test_labels_passed_through_raw(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({"a", "b"}),
            edges=(Edge(source="a", target="b", labels={"reqs/sec": "bogus"}),),
        )
        out = json.loads(_render(write_index_linked, g, aggregator, layout))
        assert out["links"][0]["labels"] == {"reqs/sec": "bogus"}

    def test_unknown_endpoint_raises_and_writes_nothing(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({"A", "B"}),
            edges=(Edge(source="A", target="C"),),
        )
        sink = io.BytesIO()
        with pytest.raises(InvalidGraphError) as exc_info:
            write_index_linked(g, aggregator.aggregate(g), sink, layout)
        assert exc_info.value.node == "C"
        assert sink.getvalue() == b""

    def test_empty_graph(self, aggregator, layout):
        out = json.loads(_render(write_index_linked, DynamicGraph(), aggregator, layout))
        assert out == {"nodes": [], "links": []}


# ---------------------------------------------------------------------------
# Flat
# ---------------------------------------------------------------------------


class TestFlat:
    def test_schema(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_flat, sample_graph, aggregator, layout))
        assert out["name"] == "k8s-ist-1"
        assert out["renderer"] == "region"
        assert out["class"] == "normal"
        assert [n["name"] for n in out["nodes"]] == sorted(sample_graph.nodes)
        assert "updated" not in out
        assert "maxVolume" not in out

    def test_connections_by_name_with_scaled_metrics(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_flat, sample_graph, aggregator, layout))
        by_pair = {(c["source"], c["target"]): c for c in out["connections"]}
        reviews = by_pair[("productpage (v1)", "reviews (v1)")]
        assert reviews["metrics"] == {"normal": 60.0, "danger": 5.0}
        assert reviews["class"] == "danger"
        details = by_pair[("productpage (v1)", "details (v1)")]
        assert details["metrics"] == {"normal": 60.0, "danger": 0.0}
        assert "class" not in details

    def test_duplicate_edges_collapse(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({"A", "B"}),
            edges=(
                Edge(source="A", target="B", labels={"reqs/sec": "5"}),
                Edge(source="A", target="B", labels={"reqs/sec": "3"}),
            ),
        )
        out = json.loads(_render(write_flat, g, aggregator, layout))
        assert out["connections"] == [
            {"source": "A", "target": "B", "metrics": {"normal": 50.0, "danger": 0.0}}
        ]

    def test_empty_graph_keeps_lists(self, aggregator, layout):
        out = json.loads(_render(write_flat, DynamicGraph(), aggregator, layout))
        assert out["nodes"] == []
        assert out["connections"] == []


# ---------------------------------------------------------------------------
# Nested
# ---------------------------------------------------------------------------


class TestNested:
    def test_root_shape(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_nested, sample_graph, aggregator, layout))
        assert out["name"] == "edge"
        assert out["renderer"] == "global"
        assert [n["name"] for n in out["nodes"]] == ["INTERNET", "k8s-ist-1"]

    def test_external_leaf(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_nested, sample_graph, aggregator, layout))
        assert out["nodes"][0] == {"name": "INTERNET", "renderer": "region", "class": "normal"}

    def test_region_nests_graph(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_nested, sample_graph, aggregator, layout))
        region = out["nodes"][1]
        assert region["renderer"] == "region"
        assert region["updated"] == 1_700_000_000_000
        assert region["maxVolume"] == 1000.0
        assert region["nodes"] == [{"name": n} for n in sorted(sample_graph.nodes)]
        assert len(region["connections"]) == len(sample_graph.edges)

    def test_root_connection_carries_ingress_aggregate(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_nested, sample_graph, aggregator, layout))
        assert out["connections"] == [
            {
                "source": "INTERNET",
                "target": "k8s-ist-1",
                "metrics": {"normal": 125.0, "danger": 0.0},
            }
        ]

    def test_custom_layout_names(self, sample_graph, aggregator):
        layout = VizLayout(
            region_name="eu-west", external_node="WORLD", max_volume=50, clock=lambda: 1
        )
        out = json.loads(_render(write_nested, sample_graph, aggregator, layout))
        assert out["connections"][0]["source"] == "WORLD"
        assert out["connections"][0]["target"] == "eu-west"
        assert out["nodes"][1]["maxVolume"] == 50


# ---------------------------------------------------------------------------
# Debug formats
# ---------------------------------------------------------------------------


class TestRawJson:
    def test_round_trips_structure(self, sample_graph, aggregator, layout):
        out = json.loads(_render(write_raw_json, sample_graph, aggregator, layout))
        assert out["nodes"] == sorted(sample_graph.nodes)
        assert len(out["edges"]) == len(sample_graph.edges)
        assert {"source", "target", "labels"} == set(out["edges"][0])


class TestDot:
    def test_digraph_output(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({"a", "b", "orphan"}),
            edges=(Edge(source="a", target="b", labels={"reqs/sec": "1"}),),
        )
        text = _render(write_dot, g, aggregator, layout).decode()
        assert text.startswith('digraph "servicegraph" {')
        assert '"a" -> "b" [label="reqs/sec: 1"];' in text
        assert '"orphan";' in text
        assert text.rstrip().endswith("}")

    def test_quotes_escaped(self, aggregator, layout):
        g = DynamicGraph(
            nodes=frozenset({'a"b', "c"}),
            edges=(Edge(source='a"b', target="c"),),
        )
        text = _render(write_dot, g, aggregator, layout).decode()
        assert '"a\\"b" -> "c"' in text


# ---------------------------------------------------------------------------
# Determinism and sinks
# ---------------------------------------------------------------------------


class TestDeterminism:
    @pytest.mark.parametrize("fmt", list(GraphFormat))
    def test_edge_order_does_not_change_output(self, fmt, sample_graph, aggregator, layout):
        fn = get_serializer(fmt)
        expected = _render(fn, sample_graph, aggregator, layout)
        for seed in range(5):
            assert _render(fn, _shuffled(sample_graph, seed), aggregator, layout) == expected

    @pytest.mark.parametrize("fmt", list(GraphFormat))
    def test_duplicate_pairs_with_different_labels(self, fmt, aggregator, layout):
        edges = (
            Edge(source="a", target="b", labels={"reqs/sec": "2"}),
            Edge(source="a", target="b", labels={"reqs/sec": "1", "errs/sec": "0.5"}),
            Edge(source="a", target="b", labels={"reqs/sec": "3"}),
        )
        graph = DynamicGraph(nodes=frozenset({"a", "b"}), edges=edges)
        reversed_graph = DynamicGraph(nodes=graph.nodes, edges=edges[::-1])
        fn = get_serializer(fmt)
        assert _render(fn, graph, aggregator, layout) == _render(
            fn, reversed_graph, aggregator, layout
        )

    def test_output_is_compact_json_with_newline(self, sample_graph, aggregator, layout):
        raw = _render(write_flat, sample_graph, aggregator, layout)
        assert raw.endswith(b"\n")
        assert b"\": " not in raw


class TestMirroredSink:
    def test_writes_through_to_primary(self):
        primary = io.BytesIO()
        MirroredSink(primary, label="nested").write(b"payload")
        assert primary.getvalue() == b"payload"
