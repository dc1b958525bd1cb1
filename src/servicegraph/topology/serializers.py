"""Serializers projecting a Dynamic graph and its aggregation into output schemas.

Contract schemas:

- ``index``  -- nodes plus index-linked links (d3 / viz.js force layouts).
- ``flat``   -- one region node with connections referenced by name.
- ``nested`` -- global -> region -> services tree (traffic visualizations).

Debug schemas:

- ``json`` -- the raw Dynamic graph.
- ``dot``  -- Graphviz source.

Every serializer sorts nodes and edges by identifier before emitting, so
identical input always produces identical bytes. Output is built fully in
memory and written to the sink in one call; a serializer that fails writes
nothing.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from servicegraph.errors import InvalidGraphError
from servicegraph.models.graph import DynamicGraph
from servicegraph.topology.aggregator import Aggregation, ConnectionMetrics

logger = structlog.get_logger()


class GraphFormat(StrEnum):
    JSON = "json"
    DOT = "dot"
    INDEX = "index"
    FLAT = "flat"
    NESTED = "nested"


MEDIA_TYPES: dict[GraphFormat, str] = {
    GraphFormat.JSON: "application/json",
    GraphFormat.DOT: "text/vnd.graphviz",
    GraphFormat.INDEX: "application/json",
    GraphFormat.FLAT: "application/json",
    GraphFormat.NESTED: "application/json",
}


# -- Sinks ---------------------------------------------------------------------


class ByteSink(Protocol):
    """Anything that accepts a byte payload (BytesIO, file, socket wrapper)."""

    def write(self, data: bytes, /) -> Any: ...


class MirroredSink:
    """Write to ``primary`` and mirror each payload to the debug log."""

    def __init__(self, primary: ByteSink, label: str = "") -> None:
        self._primary = primary
        self._label = label

    def write(self, data: bytes, /) -> Any:
        logger.debug(
            "serialized_payload",
            label=self._label,
            size=len(data),
            payload=data.decode("utf-8", errors="replace"),
        )
        return self._primary.write(data)


# -- Layout --------------------------------------------------------------------


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class VizLayout:
    """Naming and sizing for the region-based schemas."""

    region_name: str = "k8s-ist-1"
    external_node: str = "INTERNET"
    max_volume: float = 1000.0
    clock: Callable[[], int] = field(default=_now_millis)


# -- Visualization export model -----------------------------------------------


class VizMetrics(BaseModel):
    normal: float = 0.0
    danger: float = 0.0


class VizConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    target: str
    class_: str | None = Field(default=None, alias="class")
    metrics: VizMetrics = Field(default_factory=VizMetrics)


class VizNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    renderer: str | None = None
    class_: str | None = Field(default=None, alias="class")
    nodes: list[VizNode] | None = None
    connections: list[VizConnection] | None = None
    updated: int | None = None
    max_volume: float | None = Field(default=None, alias="maxVolume")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _viz_connection(source: str, target: str, metrics: ConnectionMetrics) -> VizConnection:
    return VizConnection(
        source=source,
        target=target,
        class_="danger" if metrics.danger > 0 else None,
        metrics=VizMetrics(normal=metrics.normal, danger=metrics.danger),
    )


def _region_node(graph: DynamicGraph, aggregation: Aggregation, layout: VizLayout) -> VizNode:
    return VizNode(
        name=layout.region_name,
        renderer="region",
        class_="normal",
        nodes=[VizNode(name=name) for name in graph.sorted_nodes()],
        connections=[
            _viz_connection(src, dst, metrics)
            for (src, dst), metrics in aggregation.sorted_connections()
        ],
    )


def _encode(payload: Any) -> bytes:
    return (json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")


# -- Serializers ---------------------------------------------------------------

SerializeFn = Callable[[DynamicGraph, Aggregation, ByteSink, VizLayout], None]


def write_raw_json(
    graph: DynamicGraph, aggregation: Aggregation, sink: ByteSink, layout: VizLayout
) -> None:
    sink.write(
        _encode(
            {
                "nodes": graph.sorted_nodes(),
                "edges": [
                    {
                        "source": e.source,
                        "target": e.target,
                        "labels": dict(sorted(e.labels.items())),
                    }
                    for e in graph.sorted_edges()
                ],
            }
        )
    )


def _dot_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def write_dot(
    graph: DynamicGraph, aggregation: Aggregation, sink: ByteSink, layout: VizLayout
) -> None:
    lines = ['digraph "servicegraph" {']
    connected: set[str] = set()
    for edge in graph.sorted_edges():
        connected.update((edge.source, edge.target))
        label = ", ".join(f"{k}: {v}" for k, v in sorted(edge.labels.items()))
        lines.append(
            f"  {_dot_quote(edge.source)} -> {_dot_quote(edge.target)} [label={_dot_quote(label)}];"
        )
    for name in graph.sorted_nodes():
        if name not in connected:
            lines.append(f"  {_dot_quote(name)};")
    lines.append("}")
    sink.write(("\n".join(lines) + "\n").encode("utf-8"))


def write_index_linked(
    graph: DynamicGraph, aggregation: Aggregation, sink: ByteSink, layout: VizLayout
) -> None:
    """``{nodes: [{name}], links: [{source: idx, target: idx, labels}]}``.

    Indexes refer to positions in the emitted (sorted) node list. An edge
    endpoint missing from that list raises ``InvalidGraphError``.
    """
    names = graph.sorted_nodes()
    index = {name: i for i, name in enumerate(names)}
    links = []
    for edge in graph.sorted_edges():
        for endpoint in (edge.source, edge.target):
            if endpoint not in index:
                raise InvalidGraphError(endpoint)
        links.append(
            {
                "source": index[edge.source],
                "target": index[edge.target],
                "labels": dict(sorted(edge.labels.items())),
            }
        )
    sink.write(_encode({"nodes": [{"name": n} for n in names], "links": links}))


def write_flat(
    graph: DynamicGraph, aggregation: Aggregation, sink: ByteSink, layout: VizLayout
) -> None:
    region = _region_node(graph, aggregation, layout)
    sink.write(_encode(region.to_dict()))


def write_nested(
    graph: DynamicGraph, aggregation: Aggregation, sink: ByteSink, layout: VizLayout
) -> None:
    """Two-level tree: ``edge`` (global) holding the external leaf and one region.

    The root's single connection runs from the external leaf to the region
    and carries the ingress aggregate.
    """
    region = _region_node(graph, aggregation, layout)
    region.updated = layout.clock()
    region.max_volume = layout.max_volume

    root = VizNode(
        name="edge",
        renderer="global",
        nodes=[
            VizNode(name=layout.external_node, renderer="region", class_="normal"),
            region,
        ],
        connections=[
            _viz_connection(layout.external_node, layout.region_name, aggregation.ingress),
        ],
    )
    sink.write(_encode(root.to_dict()))


SERIALIZERS: dict[GraphFormat, SerializeFn] = {
    GraphFormat.JSON: write_raw_json,
    GraphFormat.DOT: write_dot,
    GraphFormat.INDEX: write_index_linked,
    GraphFormat.FLAT: write_flat,
    GraphFormat.NESTED: write_nested,
}


def get_serializer(fmt: GraphFormat | str) -> SerializeFn:
    try:
        return SERIALIZERS[GraphFormat(fmt)]
    except ValueError:
        raise ValueError(
            f"Unknown graph format '{fmt}'. Available: {[f.value for f in GraphFormat]}"
        ) from None
