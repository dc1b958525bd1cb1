"""Periodic snapshot streaming to long-lived client connections."""

from servicegraph.streaming.connection import StreamConnection, WebSocketConnection
from servicegraph.streaming.manager import StreamManager
from servicegraph.streaming.publisher import ConnectionState, IntervalTimer, StreamPublisher

__all__ = [
    "ConnectionState",
    "IntervalTimer",
    "StreamConnection",
    "StreamManager",
    "StreamPublisher",
    "WebSocketConnection",
]
