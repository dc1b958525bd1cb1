"""Connection abstraction used by stream publishers.

``StreamConnection`` is the minimal surface a publisher needs: accept,
send one text frame, block on the next inbound message and close. Every
transport failure is raised as ``TransportError`` so the publisher has a
single error type to react to.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from servicegraph.errors import TransportError

logger = structlog.get_logger()


@runtime_checkable
class StreamConnection(Protocol):
    async def accept(self) -> None: ...

    async def send(self, payload: str) -> None: ...

    async def receive(self) -> None:
        """Block until the next inbound message; raise ``TransportError`` on disconnect."""
        ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """Adapt a Starlette ``WebSocket`` to ``StreamConnection``."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def peer(self) -> str:
        client = self._websocket.client
        return f"{client.host}:{client.port}" if client else "unknown"

    async def accept(self) -> None:
        try:
            await self._websocket.accept()
        except (RuntimeError, OSError) as exc:
            raise TransportError(f"accept failed: {exc}") from exc

    async def send(self, payload: str) -> None:
        try:
            await self._websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise TransportError(f"write failed: {exc}") from exc

    async def receive(self) -> None:
        try:
            message = await self._websocket.receive()
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise TransportError(f"read failed: {exc}") from exc
        if message["type"] == "websocket.disconnect":
            raise TransportError(f"peer closed (code={message.get('code')})")

    async def close(self) -> None:
        if (
            self._websocket.client_state == WebSocketState.DISCONNECTED
            or self._websocket.application_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await self._websocket.close()
        except (RuntimeError, OSError) as exc:
            raise TransportError(f"close failed: {exc}") from exc
