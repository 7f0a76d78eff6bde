"""Composition root for the realtime components."""

from __future__ import annotations

import logging
import uuid

from .lifecycle import ConnectionLifecycleHandler
from .messaging import MessageDistributor
from .models import MessageStore, Transport
from .presence import PresenceNotifier
from .sessions import SessionRegistry
from .typing_state import TypingCoordinator

logger = logging.getLogger(__name__)


class Hub:
    """One registry plus the components that operate on it.

    Every component receives the same registry and transport; nothing in the
    realtime package keeps module level state.
    """

    def __init__(
        self,
        transport: Transport,
        store: MessageStore,
        *,
        message_max_length: int = 500,
        history_limit: int = 50,
        typing_timeout_seconds: float = 3.0,
        max_display_name_length: int = 32,
        max_room_name_length: int = 64,
    ) -> None:
        self.transport = transport
        self.store = store
        self.registry = SessionRegistry(
            max_display_name_length=max_display_name_length,
            max_room_name_length=max_room_name_length,
        )
        self.presence = PresenceNotifier(self.registry, transport)
        self.typing = TypingCoordinator(
            self.registry, transport, timeout_seconds=typing_timeout_seconds
        )
        self.messages = MessageDistributor(
            self.registry,
            transport,
            store,
            max_length=message_max_length,
            history_limit=history_limit,
        )

    def connection(self, connection_id: str | None = None) -> ConnectionLifecycleHandler:
        """Return the lifecycle handler for a newly opened connection."""

        return ConnectionLifecycleHandler(self, connection_id or uuid.uuid4().hex)

    async def close(self) -> None:
        await self.typing.close()
        logger.debug("Realtime hub closed with %s live sessions", len(self.registry))


__all__ = ["Hub"]
