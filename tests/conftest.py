"""Shared fixtures: sample graphs, settings and a test application."""

from __future__ import annotations

import pytest
from fastapi import FastAPI

from servicegraph.api.app import create_app
from servicegraph.config import Settings
from servicegraph.models.graph import DynamicGraph, Edge, NodeRegistry
from servicegraph.observability.fixture import InMemoryGraphSource

INGRESS = "istio-ingress.istio-system (unknown)"


@pytest.fixture()
def sample_graph() -> DynamicGraph:
    """Small mesh behind an ingress gateway.

    ingress -> productpage -> reviews -> ratings
                           -> details
    """
    return DynamicGraph(
        nodes=frozenset(
            {
                "unknown (unknown)",
                INGRESS,
                "productpage (v1)",
                "reviews (v1)",
                "details (v1)",
                "ratings (v1)",
            }
        ),
        edges=(
            Edge(source="unknown (unknown)", target=INGRESS, labels={"reqs/sec": "12.5"}),
            Edge(source=INGRESS, target="productpage (v1)", labels={"reqs/sec": "12.5"}),
            Edge(
                source="productpage (v1)",
                target="reviews (v1)",
                labels={"reqs/sec": "6", "errs/sec": "0.5"},
            ),
            Edge(source="productpage (v1)", target="details (v1)", labels={"reqs/sec": "6"}),
            Edge(source="reviews (v1)", target="ratings (v1)", labels={"reqs/sec": "4"}),
        ),
    )


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        scale_factor=10.0,
        ingress_node=INGRESS,
        stream_interval_seconds=0.05,
        graph_source="file",
        graph_file="unused.json",
        tracing_enabled=False,
        _env_file=None,
    )


@pytest.fixture()
def graph_source(sample_graph: DynamicGraph) -> InMemoryGraphSource:
    return InMemoryGraphSource(sample_graph)


@pytest.fixture()
def registry() -> NodeRegistry:
    return NodeRegistry()


@pytest.fixture()
def app(
    test_settings: Settings,
    graph_source: InMemoryGraphSource,
    registry: NodeRegistry,
) -> FastAPI:
    return create_app(test_settings, source=graph_source, registry=registry)
