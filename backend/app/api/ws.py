"""WebSocket endpoint for real-time chat rooms."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

import anyio
from fastapi import APIRouter, WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from huddle.realtime import InvalidEvent

from app.config import get_settings
from app.monitoring.metrics import realtime_events_total, realtime_sessions
from app.services.hub import get_hub, get_transport

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

INBOUND_EVENT_TYPES = frozenset(
    {"join", "chat message", "typing", "stop typing", "private message", "ping", "pong"}
)


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    on_idle: Callable[[], None],
) -> AsyncIterator[T]:
    """Yield messages from *receiver*, calling *on_idle* whenever the client goes quiet."""

    timeout = float(timeout_seconds) if timeout_seconds else 0.0

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break
            on_idle()
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            yield message


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Carry join, chat, typing and private message events for one client."""

    hub = get_hub()
    transport = get_transport()

    await websocket.accept()
    connection = hub.connection()
    connection_id = connection.connection_id
    transport.register(connection_id, websocket)
    logger.debug("Connection %s opened", connection_id)

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            on_idle=lambda: transport.send(connection_id, {"type": "ping"}),
        ):
            try:
                payload = json.loads(raw_message)
            except json.JSONDecodeError:
                realtime_events_total.labels("in", "invalid").inc()
                connection.report(InvalidEvent("Invalid message format"))
                continue

            event_type = payload.get("type") if isinstance(payload, dict) else None
            realtime_events_total.labels(
                "in", event_type if event_type in INBOUND_EVENT_TYPES else "invalid"
            ).inc()

            await connection.handle(payload)
            realtime_sessions.labels().set(len(hub.registry))
    finally:
        # Cleanup must finish even when the connection task is being cancelled.
        with anyio.CancelScope(shield=True):
            await connection.disconnect()
            await transport.unregister(connection_id)
        realtime_sessions.labels().set(len(hub.registry))
        logger.debug("Connection %s closed", connection_id)
