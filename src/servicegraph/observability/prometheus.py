"""Prometheus-backed graph source.

Queries Istio request-count time series and turns every
(source service/version, destination service/version) series into an edge.
Request rates label edges with ``reqs/sec``; 5xx rates label the same edges
with ``errs/sec``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from servicegraph.errors import BackendQueryError
from servicegraph.models.graph import DynamicGraph, GraphBuilder
from servicegraph.observability.base import GraphSource, is_zero_value

logger = structlog.get_logger()

GROUP_BY = "source_service, destination_service, source_version, destination_version"

REQUESTS_LABEL = "reqs/sec"
ERRORS_LABEL = "errs/sec"


def node_id(service: str | None, version: str | None) -> str:
    return f"{service or 'unknown'} ({version or 'unknown'})"


class PrometheusGraphSource(GraphSource):
    """Build call graphs from a Prometheus HTTP API.

    Parameters
    ----------
    url:
        Base URL of the Prometheus server.
    metric:
        Counter holding per-request samples.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport, used by tests to stub the backend.
    """

    source_name = "prometheus"

    def __init__(
        self,
        url: str,
        metric: str = "istio_request_count",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.address = url.rstrip("/")
        self._metric = metric
        self._client = httpx.AsyncClient(
            base_url=self.address,
            timeout=timeout,
            transport=transport,
        )

    def requests_query(self, time_window: str) -> str:
        return f"sum(rate({self._metric}[{time_window}])) by ({GROUP_BY})"

    def errors_query(self, time_window: str) -> str:
        return f'sum(rate({self._metric}{{response_code=~"5.."}}[{time_window}])) by ({GROUP_BY})'

    async def query(self, time_window: str, *, filter_empty: bool = False) -> DynamicGraph:
        builder = GraphBuilder()
        edges: set[tuple[str, str]] = set()

        for src, dst, value in await self._query_vector(self.requests_query(time_window)):
            if filter_empty and is_zero_value(value):
                continue
            builder.add_edge(src, dst, {REQUESTS_LABEL: value})
            edges.add((src, dst))

        for src, dst, value in await self._query_vector(self.errors_query(time_window)):
            # Error series only annotate calls that survived the request pass.
            if (src, dst) in edges:
                builder.add_edge(src, dst, {ERRORS_LABEL: value})

        graph = builder.build()
        logger.info(
            "prometheus_graph_built",
            time_window=time_window,
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )
        return graph

    async def _query_vector(self, promql: str) -> list[tuple[str, str, str]]:
        """Run an instant query and return (source, target, raw value) triples."""
        try:
            resp = await self._client.get("/api/v1/query", params={"query": promql})
            resp.raise_for_status()
            body: dict[str, Any] = resp.json()
        except httpx.HTTPError as exc:
            logger.error("prometheus_query_failed", query=promql, error=str(exc))
            raise BackendQueryError(f"Prometheus query failed: {exc}") from exc
        except ValueError as exc:
            logger.error("prometheus_response_invalid", query=promql, error=str(exc))
            raise BackendQueryError("Prometheus returned a non-JSON response") from exc

        try:
            return _vector_samples(body)
        except (AttributeError, TypeError, KeyError, IndexError) as exc:
            logger.error("prometheus_response_malformed", query=promql, error=repr(exc))
            raise BackendQueryError(f"Malformed Prometheus response: {exc!r}") from exc

    async def close(self) -> None:
        await self._client.aclose()


def _vector_samples(body: dict[str, Any]) -> list[tuple[str, str, str]]:
    if body.get("status") != "success":
        raise BackendQueryError(
            f"Prometheus query unsuccessful: {body.get('error', 'unknown error')}",
            extra={"error_type_backend": body.get("errorType", "")},
        )
    data = body.get("data") or {}
    if data.get("resultType") != "vector":
        raise BackendQueryError(f"Unexpected Prometheus result type '{data.get('resultType')}'")

    samples = []
    for sample in data.get("result") or []:
        metric = sample.get("metric") or {}
        value = sample.get("value") or [None, ""]
        # Instant vector samples are [timestamp, "value"].
        if not isinstance(value, list) or len(value) != 2:
            raise BackendQueryError(f"Malformed Prometheus sample value: {value!r}")
        samples.append(
            (
                node_id(metric.get("source_service"), metric.get("source_version")),
                node_id(metric.get("destination_service"), metric.get("destination_version")),
                str(value[1]),
            )
        )
    return samples
