"""Edge aggregation: collapse duplicate edges into one visual connection.

Every raw edge between the same (source, target) pair becomes a single
connection whose metrics are the field-wise maximum of the scaled values
seen on those edges. Maximum (not sum) keeps the "peak observed" meaning,
so aggregating a graph merged with itself changes nothing and the order of
edges in the input never matters.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

import structlog
from pydantic import BaseModel, Field

from servicegraph.errors import MetricParseError
from servicegraph.models.graph import DynamicGraph, Edge

logger = structlog.get_logger()

METRIC_FIELDS = ("normal", "danger")

DEFAULT_METRIC_FIELDS: dict[str, str] = {"reqs/sec": "normal", "errs/sec": "danger"}

ConnectionKey = tuple[str, str]


# -- Models --------------------------------------------------------------------


class ConnectionMetrics(BaseModel):
    normal: float = 0.0
    danger: float = 0.0

    def merge(self, other: ConnectionMetrics) -> ConnectionMetrics:
        """Field-wise maximum of ``self`` and ``other``."""
        return ConnectionMetrics(
            normal=max(self.normal, other.normal),
            danger=max(self.danger, other.danger),
        )


class MetricAnomaly(BaseModel):
    """A label value that could not be parsed and was treated as zero."""

    source: str
    target: str
    metric: str
    raw_value: str


class Aggregation(BaseModel):
    """Result of one aggregation pass."""

    connections: dict[ConnectionKey, ConnectionMetrics] = Field(default_factory=dict)
    ingress: ConnectionMetrics = Field(default_factory=ConnectionMetrics)
    anomalies: list[MetricAnomaly] = Field(default_factory=list)

    def sorted_connections(self) -> list[tuple[ConnectionKey, ConnectionMetrics]]:
        return sorted(self.connections.items(), key=lambda item: item[0])


# -- Parsing -------------------------------------------------------------------


def parse_metric(metric: str, raw_value: str) -> float:
    """Parse a string-encoded metric value.

    Raises ``MetricParseError`` for anything that is not a finite number.
    NaN is rejected because it would make the maximum order-dependent.
    """
    try:
        value = float(raw_value)
    except (TypeError, ValueError) as exc:
        raise MetricParseError(metric, str(raw_value)) from exc
    if not math.isfinite(value):
        raise MetricParseError(metric, str(raw_value))
    return value


# -- Aggregator ----------------------------------------------------------------


class EdgeAggregator:
    """Merge a Dynamic graph's edges into scaled, max-combined connections.

    Parameters
    ----------
    scale_factor:
        Multiplier applied to every parsed metric value.
    metric_fields:
        Maps label names to connection metric fields (``normal``/``danger``).
        Labels not listed here are ignored.
    ingress_node:
        Node whose inbound connections form the distinguished aggregate edge.
    """

    def __init__(
        self,
        scale_factor: float = 1.0,
        metric_fields: Mapping[str, str] | None = None,
        ingress_node: str = "",
    ) -> None:
        fields = dict(DEFAULT_METRIC_FIELDS if metric_fields is None else metric_fields)
        unknown = sorted(set(fields.values()) - set(METRIC_FIELDS))
        if unknown:
            raise ValueError(f"Unknown metric fields: {unknown}. Expected one of {METRIC_FIELDS}")
        self._scale_factor = scale_factor
        self._metric_fields = fields
        self._ingress_node = ingress_node

    @property
    def scale_factor(self) -> float:
        return self._scale_factor

    @property
    def ingress_node(self) -> str:
        return self._ingress_node

    def edge_metrics(self, edge: Edge, anomalies: list[MetricAnomaly]) -> ConnectionMetrics:
        """Scaled metrics for a single edge.

        Malformed values count as zero; fields with no mapped label are zero.
        """
        values: dict[str, float] = {}
        for label, field_name in self._metric_fields.items():
            raw = edge.labels.get(label)
            if raw is None:
                continue
            try:
                parsed = parse_metric(label, raw)
            except MetricParseError as exc:
                logger.warning(
                    "metric_parse_failed",
                    source=edge.source,
                    target=edge.target,
                    metric=exc.metric,
                    raw_value=exc.raw_value,
                )
                anomalies.append(
                    MetricAnomaly(
                        source=edge.source,
                        target=edge.target,
                        metric=label,
                        raw_value=exc.raw_value,
                    )
                )
                parsed = 0.0
            scaled = parsed * self._scale_factor
            # Two labels mapped to one field keep the larger value.
            values[field_name] = max(values.get(field_name, scaled), scaled)
        return ConnectionMetrics(**values)

    def aggregate(self, graph: DynamicGraph) -> Aggregation:
        connections: dict[ConnectionKey, ConnectionMetrics] = {}
        anomalies: list[MetricAnomaly] = []
        ingress: ConnectionMetrics | None = None

        for edge in graph.edges:
            metrics = self.edge_metrics(edge, anomalies)
            key = (edge.source, edge.target)
            existing = connections.get(key)
            connections[key] = metrics if existing is None else existing.merge(metrics)
            if self._ingress_node and edge.target == self._ingress_node:
                ingress = metrics if ingress is None else ingress.merge(metrics)

        if anomalies:
            logger.info("aggregation_anomalies", count=len(anomalies))
        return Aggregation(
            connections=connections,
            ingress=ingress or ConnectionMetrics(),
            anomalies=anomalies,
        )
