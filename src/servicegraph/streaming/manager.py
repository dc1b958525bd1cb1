"""Registry of active stream publishers.

Lets the application report how many live connections it serves and
cancel all of them on shutdown.
"""

from __future__ import annotations

import structlog

from servicegraph.streaming.publisher import StreamPublisher

logger = structlog.get_logger()


class StreamManager:
    """Track publishers for the lifetime of their connections."""

    def __init__(self) -> None:
        self._publishers: dict[str, StreamPublisher] = {}

    @property
    def active_connections(self) -> int:
        return len(self._publishers)

    def get(self, connection_id: str) -> StreamPublisher | None:
        return self._publishers.get(connection_id)

    async def serve(self, publisher: StreamPublisher) -> None:
        """Run ``publisher`` to completion while it is registered."""
        self._publishers[publisher.connection_id] = publisher
        try:
            await publisher.run()
        finally:
            self._publishers.pop(publisher.connection_id, None)

    def close_all(self, reason: str = "server_shutdown") -> int:
        """Signal every active publisher to stop. Returns how many were signalled."""
        count = 0
        for publisher in list(self._publishers.values()):
            if publisher.cancel(reason):
                count += 1
        if count:
            logger.info("streams_cancelled", count=count, reason=reason)
        return count
