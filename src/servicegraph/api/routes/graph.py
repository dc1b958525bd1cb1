"""Graph rendering and node registration endpoints.

Each graph endpoint runs the same pipeline and differs only in the output
format:

- ``GET /graph``         raw Dynamic graph (json)
- ``GET /dotgraph``      Graphviz source
- ``GET /d3graph``       index-linked nodes/links
- ``GET /vizgraph``      nested global -> region -> services tree
- ``GET /vizgraph/flat`` single region with named connections
"""

from __future__ import annotations

import io
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from servicegraph.errors import ValidationError
from servicegraph.models.graph import NodeRegistry
from servicegraph.observability.base import parse_time_window
from servicegraph.topology.renderer import GraphRenderer
from servicegraph.topology.serializers import MEDIA_TYPES, GraphFormat

logger = structlog.get_logger()

router = APIRouter(tags=["graph"])


def get_renderer(request: Request) -> GraphRenderer:
    renderer: GraphRenderer = request.app.state.renderer
    return renderer


def get_registry(request: Request) -> NodeRegistry:
    registry: NodeRegistry = request.app.state.registry
    return registry


def resolve_time_window(request: Request, time_horizon: str | None) -> str:
    value = time_horizon or request.app.state.settings.default_time_window
    try:
        return parse_time_window(value)
    except ValueError as exc:
        raise ValidationError(str(exc), extra={"time_horizon": value}) from exc


def _graph_endpoint(fmt: GraphFormat) -> Callable[..., Awaitable[Response]]:
    async def endpoint(
        request: Request,
        time_horizon: str | None = Query(default=None, description="Query window, e.g. 5m"),
        filter_empty: bool = Query(default=False, description="Drop edges with zero traffic"),
    ) -> Response:
        window = resolve_time_window(request, time_horizon)
        renderer = get_renderer(request)
        graph = await renderer.fetch(window, filter_empty=filter_empty)
        sink = io.BytesIO()
        renderer.render(graph, fmt, sink)
        logger.info(
            "graph_rendered",
            format=fmt.value,
            time_horizon=window,
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )
        return Response(content=sink.getvalue(), media_type=MEDIA_TYPES[fmt])

    endpoint.__name__ = f"render_{fmt.value}_graph"
    return endpoint


for _path, _fmt in (
    ("/graph", GraphFormat.JSON),
    ("/dotgraph", GraphFormat.DOT),
    ("/d3graph", GraphFormat.INDEX),
    ("/vizgraph", GraphFormat.NESTED),
    ("/vizgraph/flat", GraphFormat.FLAT),
):
    router.add_api_route(_path, _graph_endpoint(_fmt), methods=["GET"])


@router.post("/node")
async def add_node(
    request: Request,
    name: str = Query(..., description="Node name to register"),
) -> dict[str, Any]:
    """Register a node so it appears in every rendered graph."""
    registry = get_registry(request)
    try:
        created = registry.register(name)
    except ValueError as exc:
        raise ValidationError("missing argument 'name'", extra={"name": name}) from exc
    return {"name": name.strip(), "created": created, "total": len(registry)}


@router.get("/nodes")
async def list_nodes(request: Request) -> dict[str, Any]:
    registry = get_registry(request)
    nodes = list(registry)
    return {"nodes": nodes, "total": len(nodes)}
