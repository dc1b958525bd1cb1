"""Request pipeline: graph source -> registry merge -> validate -> aggregate -> serialize."""

from __future__ import annotations

import io

import structlog

from servicegraph.config.settings import Settings
from servicegraph.models.graph import DynamicGraph, NodeRegistry, validate_dynamic
from servicegraph.observability.base import GraphSource
from servicegraph.observability.tracing import get_tracer
from servicegraph.topology.aggregator import EdgeAggregator
from servicegraph.topology.serializers import (
    ByteSink,
    GraphFormat,
    MirroredSink,
    VizLayout,
    get_serializer,
)

logger = structlog.get_logger()
tracer = get_tracer("servicegraph.topology")


class GraphRenderer:
    """Produce serialized graphs for HTTP handlers and stream publishers."""

    def __init__(
        self,
        source: GraphSource,
        registry: NodeRegistry,
        aggregator: EdgeAggregator,
        layout: VizLayout | None = None,
        mirror_output: bool = False,
    ) -> None:
        self.source = source
        self.registry = registry
        self.aggregator = aggregator
        self.layout = layout or VizLayout()
        self._mirror_output = mirror_output

    @classmethod
    def from_settings(
        cls, settings: Settings, source: GraphSource, registry: NodeRegistry
    ) -> GraphRenderer:
        return cls(
            source=source,
            registry=registry,
            aggregator=EdgeAggregator(
                scale_factor=settings.scale_factor,
                metric_fields=settings.metric_fields,
                ingress_node=settings.ingress_node,
            ),
            layout=VizLayout(
                region_name=settings.region_name,
                external_node=settings.external_node,
                max_volume=settings.region_max_volume,
            ),
            mirror_output=settings.mirror_output,
        )

    async def fetch(self, time_window: str, *, filter_empty: bool = False) -> DynamicGraph:
        """Query the source and add every registered node to the result."""
        with tracer.start_as_current_span("graph.fetch") as span:
            span.set_attribute("graph.source", self.source.source_name)
            span.set_attribute("graph.time_window", time_window)
            graph = await self.source.query(time_window, filter_empty=filter_empty)
            graph = graph.with_nodes(self.registry.snapshot())
            validate_dynamic(graph)
            span.set_attribute("graph.nodes", len(graph.nodes))
            span.set_attribute("graph.edges", len(graph.edges))
        return graph

    def render(self, graph: DynamicGraph, fmt: GraphFormat | str, sink: ByteSink) -> None:
        """Aggregate ``graph`` and write it to ``sink`` in ``fmt``.

        The payload is fully built before anything reaches ``sink``.
        """
        serializer = get_serializer(fmt)
        with tracer.start_as_current_span("graph.render") as span:
            span.set_attribute("graph.format", str(fmt))
            aggregation = self.aggregator.aggregate(graph)
            buffer = io.BytesIO()
            serializer(graph, aggregation, buffer, self.layout)
            span.set_attribute("graph.anomalies", len(aggregation.anomalies))
        target = MirroredSink(sink, label=str(fmt)) if self._mirror_output else sink
        target.write(buffer.getvalue())

    async def snapshot(
        self, fmt: GraphFormat | str, time_window: str, *, filter_empty: bool = False
    ) -> bytes:
        graph = await self.fetch(time_window, filter_empty=filter_empty)
        buffer = io.BytesIO()
        self.render(graph, fmt, buffer)
        return buffer.getvalue()
