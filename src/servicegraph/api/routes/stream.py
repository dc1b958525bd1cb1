"""WebSocket endpoint pushing periodic graph snapshots."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, WebSocket

from servicegraph.observability.base import parse_time_window
from servicegraph.streaming.connection import WebSocketConnection
from servicegraph.streaming.publisher import SnapshotFn, StreamPublisher
from servicegraph.topology.serializers import GraphFormat

logger = structlog.get_logger()

router = APIRouter(tags=["stream"])


@router.websocket("/vizsocket")
async def viz_socket(
    websocket: WebSocket,
    format: GraphFormat | None = Query(default=None),  # noqa: A002
    time_horizon: str | None = Query(default=None),
    filter_empty: bool = Query(default=False),
    heartbeat: bool = Query(default=False, description="Send a fixed payload instead of graphs"),
) -> None:
    state = websocket.app.state
    settings = state.settings
    fmt = format or GraphFormat(settings.stream_default_format)

    try:
        window = parse_time_window(time_horizon or settings.default_time_window)
    except ValueError as exc:
        logger.warning("stream_rejected", reason=str(exc))
        await websocket.close(code=1008, reason=str(exc))
        return

    if heartbeat:
        payload = settings.stream_heartbeat_payload

        async def snapshot() -> bytes | str:
            return payload

    else:
        renderer = state.renderer

        async def snapshot() -> bytes | str:
            graph_bytes: bytes = await renderer.snapshot(fmt, window, filter_empty=filter_empty)
            return graph_bytes

    snapshot_fn: SnapshotFn = snapshot
    connection = WebSocketConnection(websocket)
    publisher = StreamPublisher(
        connection,
        snapshot_fn,
        interval=settings.stream_interval_seconds,
    )
    logger.info(
        "stream_requested",
        connection_id=publisher.connection_id,
        peer=connection.peer,
        format=fmt.value,
        heartbeat=heartbeat,
    )
    await state.streams.serve(publisher)
