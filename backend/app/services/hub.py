"""Process-wide realtime hub used by the websocket and REST endpoints."""

from __future__ import annotations

import logging

from huddle.realtime import Hub, MessageStore

from app.config import get_settings
from app.services.message_store import SqlMessageStore
from app.services.transport import WebSocketTransport

logger = logging.getLogger(__name__)

_hub: Hub | None = None
_transport: WebSocketTransport | None = None


def configure_hub(
    *,
    store: MessageStore | None = None,
    transport: WebSocketTransport | None = None,
) -> Hub:
    """Build a fresh hub, replacing the current one."""

    global _hub, _transport
    settings = get_settings()
    _transport = transport or WebSocketTransport(queue_size=settings.websocket_send_queue_size)
    _hub = Hub(
        _transport,
        store or SqlMessageStore(),
        message_max_length=settings.chat_message_max_length,
        history_limit=settings.chat_history_default_limit,
        typing_timeout_seconds=settings.typing_timeout_seconds,
        max_display_name_length=settings.max_display_name_length,
        max_room_name_length=settings.max_room_name_length,
    )
    return _hub


def get_hub() -> Hub:
    if _hub is None:
        return configure_hub()
    return _hub


def get_transport() -> WebSocketTransport:
    if _transport is None:
        configure_hub()
    return _transport  # type: ignore[return-value]


async def startup_hub() -> None:
    hub = get_hub()
    logger.info("Realtime hub ready (message limit %s characters)", hub.messages.max_length)


async def shutdown_hub() -> None:
    global _hub, _transport
    if _hub is not None:
        await _hub.close()
    if _transport is not None:
        await _transport.close()
    _hub = None
    _transport = None
