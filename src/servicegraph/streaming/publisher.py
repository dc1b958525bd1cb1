"""Live snapshot publishing over one persistent connection.

A publisher moves through ``connecting -> open -> closing -> closed``. While
open, two tasks run side by side:

- the producer waits for the interval timer, builds a snapshot and writes
  one frame;
- the reader blocks on the next inbound message purely to notice that the
  peer went away.

Both share one cancellation event. The first termination, whatever its
trigger (peer close, write failure, explicit ``cancel``), stops the timer
and closes the connection exactly once. Writes attempted after that are
dropped. A broken connection is never reopened; clients reconnect.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from enum import StrEnum

import structlog

from servicegraph.errors import ServiceGraphError, TransportError
from servicegraph.streaming.connection import StreamConnection

logger = structlog.get_logger()

SnapshotFn = Callable[[], Awaitable[bytes | str]]


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class IntervalTimer:
    """Fixed-interval tick source that can be stopped once."""

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.stop_count = 0
        self._stopped = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    async def wait(self) -> bool:
        """Sleep one interval. Returns ``False`` if the timer was stopped."""
        if self._stopped.is_set():
            return False
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
        except TimeoutError:
            return True
        return False

    def stop(self) -> bool:
        if self._stopped.is_set():
            return False
        self._stopped.set()
        self.stop_count += 1
        return True


async def _complete_uncancelled(coro: Awaitable[None]) -> None:
    """Run ``coro`` to the end even if the calling task is cancelled meanwhile.

    A cancellation received while waiting is re-raised once ``coro`` is done.
    Cancel scopes that redeliver on every await are absorbed the same way.
    """
    inner = asyncio.ensure_future(coro)
    cancelled = False
    while not inner.done():
        try:
            await asyncio.shield(inner)
        except asyncio.CancelledError:
            cancelled = True
    inner.result()
    if cancelled:
        raise asyncio.CancelledError


class StreamPublisher:
    """Stream snapshots to one connection until it goes away.

    Parameters
    ----------
    connection:
        Transport to write frames to.
    snapshot:
        Coroutine function returning the next frame payload.
    interval:
        Seconds between frames. Ignored when ``timer`` is given.
    timer:
        Pre-built timer; the publisher owns and stops it.
    """

    def __init__(
        self,
        connection: StreamConnection,
        snapshot: SnapshotFn,
        interval: float = 1.0,
        *,
        timer: IntervalTimer | None = None,
        connection_id: str | None = None,
    ) -> None:
        self.connection_id = connection_id or uuid.uuid4().hex[:12]
        self._connection = connection
        self._snapshot = snapshot
        self._timer = timer or IntervalTimer(interval)
        self._cancelled = asyncio.Event()
        # Only the producer writes today; the lock keeps any future writer serialized.
        self._write_lock = asyncio.Lock()
        self._state = ConnectionState.CONNECTING
        self._connection_closed = False
        self.close_reason = ""
        self.frames_sent = 0
        self.frames_suppressed = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def timer(self) -> IntervalTimer:
        return self._timer

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    # -- Lifecycle -------------------------------------------------------------

    async def run(self) -> None:
        """Accept the connection and publish until termination."""
        try:
            await self._connection.accept()
        except TransportError as exc:
            logger.warning("stream_accept_failed", connection_id=self.connection_id, error=str(exc))
            self._terminate("accept_failed")
            await _complete_uncancelled(self._finish())
            return

        self._state = ConnectionState.OPEN
        logger.info(
            "stream_opened",
            connection_id=self.connection_id,
            interval=self._timer.interval,
        )

        producer = asyncio.create_task(self._produce(), name=f"producer-{self.connection_id}")
        reader = asyncio.create_task(self._read(), name=f"reader-{self.connection_id}")
        try:
            await asyncio.wait({producer, reader}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._terminate("finished")
            for task in (producer, reader):
                task.cancel()
            await _complete_uncancelled(self._teardown(producer, reader))

    def cancel(self, reason: str = "cancelled") -> bool:
        """Inject the cancellation signal from outside the transport.

        Returns ``False`` if the publisher was already terminating.
        """
        return self._terminate(reason)

    async def close(self, reason: str = "closed") -> None:
        self._terminate(reason)
        await self._close_connection()

    def _terminate(self, reason: str) -> bool:
        if self._cancelled.is_set():
            return False
        self._cancelled.set()
        self._state = ConnectionState.CLOSING
        self.close_reason = reason
        self._timer.stop()
        logger.info("stream_closing", connection_id=self.connection_id, reason=reason)
        return True

    async def _teardown(self, *tasks: asyncio.Task[None]) -> None:
        for result in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(result, Exception):
                logger.error(
                    "stream_task_failed",
                    connection_id=self.connection_id,
                    error=repr(result),
                )
        await self._finish()

    async def _finish(self) -> None:
        await self._close_connection()
        self._state = ConnectionState.CLOSED
        logger.info(
            "stream_closed",
            connection_id=self.connection_id,
            reason=self.close_reason,
            frames_sent=self.frames_sent,
            frames_suppressed=self.frames_suppressed,
        )

    async def _close_connection(self) -> None:
        if self._connection_closed:
            return
        self._connection_closed = True
        try:
            await self._connection.close()
        except TransportError as exc:
            logger.debug("stream_close_failed", connection_id=self.connection_id, error=str(exc))

    # -- Tasks -----------------------------------------------------------------

    async def _produce(self) -> None:
        while await self._timer.wait():
            if self._cancelled.is_set():
                break
            try:
                payload = await self._snapshot()
            except ServiceGraphError as exc:
                logger.warning(
                    "stream_snapshot_failed",
                    connection_id=self.connection_id,
                    error_type=exc.error_type,
                    detail=exc.detail,
                )
                continue
            await self.write_frame(payload)

    async def _read(self) -> None:
        while not self._cancelled.is_set():
            try:
                await self._connection.receive()
            except TransportError as exc:
                logger.info("stream_peer_closed", connection_id=self.connection_id, error=str(exc))
                self._terminate("peer_closed")
                return
            logger.debug("stream_inbound_ignored", connection_id=self.connection_id)

    async def write_frame(self, payload: bytes | str) -> bool:
        """Send one frame. Returns ``False`` when the frame was not delivered."""
        async with self._write_lock:
            if self._cancelled.is_set():
                self.frames_suppressed += 1
                logger.debug("stream_write_suppressed", connection_id=self.connection_id)
                return False
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            try:
                await self._connection.send(text.rstrip("\n"))
            except TransportError as exc:
                logger.info("stream_write_failed", connection_id=self.connection_id, error=str(exc))
                self._terminate("write_failed")
                return False
            self.frames_sent += 1
            return True
