"""Base interface for graph data sources.

A ``GraphSource`` turns a monitoring backend's time series into a
``DynamicGraph`` for one query window. The rendering pipeline and the
streaming publisher only ever talk to this interface.
"""

import re
from abc import ABC, abstractmethod

from servicegraph.models.graph import DynamicGraph

_TIME_WINDOW_RE = re.compile(r"^[0-9]+(ms|s|m|h|d|w|y)$")


def parse_time_window(value: str) -> str:
    """Validate a Prometheus-style duration such as ``5m`` or ``30s``."""
    value = value.strip()
    if not _TIME_WINDOW_RE.match(value):
        raise ValueError(f"Invalid time window '{value}'. Expected e.g. '30s', '5m', '1h'.")
    return value


class GraphSource(ABC):
    """Abstract interface for call-graph querying."""

    source_name: str
    address: str = ""

    @abstractmethod
    async def query(self, time_window: str, *, filter_empty: bool = False) -> DynamicGraph:
        """Build the call graph observed over ``time_window``.

        Raises ``BackendQueryError`` when the backend cannot be queried. An
        empty result is an empty graph, not an error.
        """

    async def close(self) -> None:
        """Release any underlying client resources."""


def is_zero_value(value: str) -> bool:
    """True when a string-encoded metric parses to exactly zero."""
    try:
        return float(value) == 0.0
    except ValueError:
        return False
