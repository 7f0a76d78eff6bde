"""Room and private message distribution."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict

from .errors import InvalidMessage, NotJoined, RecipientNotFound, StoreUnavailable
from .fanout import fan_out
from .models import ChatMessage, MessageStore, PrivateMessage, Session, StoredMessageT, Transport
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _RoomSequencer:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class MessageDistributor:
    """Validate, persist and deliver chat messages.

    Messages for one room are accepted one at a time: persistence and the
    hand-off to the transport happen under a per-room lock so every member
    observes the same order.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        transport: Transport,
        store: MessageStore,
        *,
        max_length: int = 500,
        history_limit: int = 50,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._store = store
        self._max_length = max_length
        self._history_limit = history_limit
        self._sequencers: Dict[str, _RoomSequencer] = {}
        self._store_warning_logged = False

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def history_limit(self) -> int:
        return self._history_limit

    def _require_session(self, connection_id: str) -> Session:
        session = self._registry.get(connection_id)
        if session is None:
            raise NotJoined()
        return session

    def _validate_body(self, body: object) -> str:
        if not isinstance(body, str) or not body.strip():
            raise InvalidMessage("Message must not be empty")
        if len(body) > self._max_length:
            raise InvalidMessage(f"Message must be at most {self._max_length} characters")
        return body.strip()

    @contextlib.asynccontextmanager
    async def sequenced(self, room: str) -> AsyncIterator[None]:
        """Hold the ordering lock of *room*; messages for it wait until release."""

        sequencer = self._sequencers.get(room)
        if sequencer is None:
            sequencer = self._sequencers[room] = _RoomSequencer()
        sequencer.users += 1
        try:
            async with sequencer.lock:
                yield
        finally:
            sequencer.users -= 1
            if sequencer.users == 0:
                self._sequencers.pop(room, None)

    async def _persist(self, message: StoredMessageT) -> StoredMessageT:
        """Append *message*; on failure return it unsaved so delivery can go on."""

        try:
            stored = await self._store.append(message)
        except StoreUnavailable:
            if not self._store_warning_logged:
                logger.warning(
                    "Message store unavailable; delivering messages to online users without persistence",
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                self._store_warning_logged = True
            return message
        except Exception:
            logger.exception("Unexpected error while storing message for %s", message.room)
            return message
        self._store_warning_logged = False
        return stored

    async def post_room_message(self, connection_id: str, body: object) -> ChatMessage:
        """Accept a message from *connection_id* and deliver it to its room.

        The sender receives the message too. When the store rejects the
        write the message is still delivered and comes back with
        ``persisted == False``.
        """

        session = self._require_session(connection_id)
        text = self._validate_body(body)
        room = session.room
        async with self.sequenced(room):
            message = ChatMessage(
                display_name=session.display_name,
                body=text,
                room=room,
                user_id=session.user_id,
            )
            message = await self._persist(message)
            fan_out(
                self._transport,
                self._registry.index.members_of(room),
                {"type": "chat message", "message": message.to_public()},
            )
        return message

    async def fetch_recent_history(self, room: str, limit: int | None = None) -> list[ChatMessage]:
        """Return up to *limit* most recent messages of *room*, oldest first."""

        limit = self._history_limit if limit is None else limit
        if limit <= 0:
            return []
        messages = await self._store.query_recent(room, limit)
        return list(messages)

    async def post_private_message(
        self, connection_id: str, target_user_id: object, body: object
    ) -> PrivateMessage:
        """Deliver a private message to whichever connection *target_user_id* has now."""

        session = self._require_session(connection_id)
        text = self._validate_body(body)
        target = str(target_user_id or "").strip()
        recipient = self._registry.find_by_user(target) if target else None
        if recipient is None:
            raise RecipientNotFound()

        message = PrivateMessage(
            from_user_id=session.user_id,
            from_display_name=session.display_name,
            to_user_id=recipient.user_id,
            to_display_name=recipient.display_name,
            body=text,
        )
        message = await self._persist(message)

        # The recipient may have left while the store was busy.
        recipient = self._registry.find_by_user(target)
        if recipient is None:
            raise RecipientNotFound("User disconnected before the message was delivered")

        payload = message.to_public()
        if recipient.connection_id != connection_id:
            fan_out(
                self._transport,
                (recipient.connection_id,),
                {"type": "private message", "direction": "incoming", "message": payload},
            )
        fan_out(
            self._transport,
            (connection_id,),
            {"type": "private message", "direction": "outgoing", "message": payload},
        )
        return message


__all__ = ["MessageDistributor"]
