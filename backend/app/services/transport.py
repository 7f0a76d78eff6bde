"""WebSocket delivery for the realtime hub."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Dict

from fastapi import status
from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections, realtime_dropped_deliveries_total, realtime_events_total

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class ConnectionOutbox:
    """Bounded queue of outbound events drained by one writer task.

    Producers never wait: when the queue is full the connection is treated
    as a slow consumer and closed, which runs the regular disconnect
    cleanup.
    """

    def __init__(self, connection_id: str, websocket: WebSocket, *, max_size: int) -> None:
        self.connection_id = connection_id
        self._websocket = websocket
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_size)
        self._writer: asyncio.Task[None] | None = None
        self._closer: asyncio.Task[None] | None = None
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"outbox:{self.connection_id}")

    def put(self, payload: dict[str, Any]) -> bool:
        if not self._accepting:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            self._accepting = False
            logger.warning(
                "Connection %s is not keeping up with %s queued events; closing it",
                self.connection_id,
                self._queue.qsize(),
            )
            self._closer = asyncio.create_task(self._close_slow_consumer())
            return False
        return True

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            if not await safe_send_json(self._websocket, payload):
                self._accepting = False
                return

    async def _close_slow_consumer(self) -> None:
        with contextlib.suppress(RuntimeError):
            await self._websocket.close(
                code=status.WS_1013_TRY_AGAIN_LATER, reason="Too many pending events"
            )

    async def close(self) -> None:
        self._accepting = False
        for task in (self._writer, self._closer):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._writer = None
        self._closer = None


class WebSocketTransport:
    """Route hub payloads to per-connection outboxes."""

    def __init__(self, *, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._outboxes: Dict[str, ConnectionOutbox] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> ConnectionOutbox:
        outbox = ConnectionOutbox(connection_id, websocket, max_size=self._queue_size)
        self._outboxes[connection_id] = outbox
        outbox.start()
        realtime_connections.labels().inc()
        return outbox

    async def unregister(self, connection_id: str) -> None:
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is None:
            return
        realtime_connections.labels().dec()
        await outbox.close()

    def send(self, connection_id: str, payload: dict[str, Any]) -> None:
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            realtime_dropped_deliveries_total.labels("unknown_connection").inc()
            logger.debug("Dropping %s event for closed connection %s", payload.get("type"), connection_id)
            return
        if outbox.put(payload):
            realtime_events_total.labels("out", payload.get("type", "unknown")).inc()
        else:
            realtime_dropped_deliveries_total.labels("slow_consumer").inc()

    async def close(self) -> None:
        for connection_id in list(self._outboxes):
            await self.unregister(connection_id)

    def __len__(self) -> int:
        return len(self._outboxes)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._outboxes


__all__ = ["ConnectionOutbox", "WebSocketTransport", "safe_send_json"]
