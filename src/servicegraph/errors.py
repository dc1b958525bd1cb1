"""Structured exception hierarchy following RFC 7807 Problem Details.

All servicegraph domain exceptions extend ``ServiceGraphError``. The HTTP
layer converts them to ``application/problem+json`` responses (see
``servicegraph.api.exceptions``); the graph model, aggregator and streaming
code raise them without depending on the web framework.
"""

from __future__ import annotations

from typing import Any


class ServiceGraphError(Exception):
    """Base exception for all servicegraph domain errors."""

    status_code: int = 500
    error_type: str = "about:blank"
    title: str = "Internal Server Error"

    def __init__(
        self,
        detail: str = "",
        *,
        instance: str = "",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail or self.title
        self.instance = instance
        self.extra = extra or {}
        super().__init__(self.detail)

    def to_problem_detail(self) -> dict[str, Any]:
        """RFC 7807 Problem Details JSON object."""
        body: dict[str, Any] = {
            "type": self.error_type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            body["instance"] = self.instance
        if self.extra:
            body.update(self.extra)
        return body


class InvalidGraphError(ServiceGraphError):
    """An edge references a node that is not part of the graph's node set."""

    status_code = 500
    error_type = "urn:servicegraph:error:invalid-graph"
    title = "Invalid Graph"

    def __init__(self, node: str, *, instance: str = "") -> None:
        self.node = node
        super().__init__(
            f"edge references unknown node '{node}'",
            instance=instance,
            extra={"node": node},
        )


class MetricParseError(ServiceGraphError):
    """A metric label value is not a finite number.

    Non-fatal: the aggregator records the anomaly and uses zero instead.
    """

    status_code = 422
    error_type = "urn:servicegraph:error:metric-parse"
    title = "Metric Parse Error"

    def __init__(self, metric: str, raw_value: str) -> None:
        self.metric = metric
        self.raw_value = raw_value
        super().__init__(
            f"metric '{metric}' has non-numeric value {raw_value!r}",
            extra={"metric": metric, "raw_value": raw_value},
        )


class BackendQueryError(ServiceGraphError):
    status_code = 502
    error_type = "urn:servicegraph:error:backend-query"
    title = "Backend Query Failed"


class TransportError(ServiceGraphError):
    """Read or write failure on a streaming connection."""

    status_code = 500
    error_type = "urn:servicegraph:error:transport"
    title = "Transport Error"


class ValidationError(ServiceGraphError):
    status_code = 422
    error_type = "urn:servicegraph:error:validation"
    title = "Validation Error"

