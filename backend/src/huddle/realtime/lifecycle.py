"""Per-connection event handling and cleanup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Mapping

from .errors import HubError, InvalidEvent, NotJoined, StoreUnavailable
from .fanout import fan_out
from .models import ChatMessage, PrivateMessage, Session

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from .hub import Hub


logger = logging.getLogger(__name__)

EventHandler = Callable[[Mapping[str, Any]], Awaitable[Any]]


class ConnectionLifecycleHandler:
    """Wire one connection's inbound events to the hub components.

    States: connected (no session) -> joined -> gone. Events must be fed in
    the order the connection sent them; ``disconnect`` runs its cleanup at
    most once and events arriving afterwards are ignored.
    """

    def __init__(self, hub: "Hub", connection_id: str) -> None:
        self._hub = hub
        self._connection_id = connection_id
        self._gone = False
        self._handlers: Dict[str, EventHandler] = {
            "join": self._on_join,
            "chat message": self._on_chat_message,
            "typing": self._on_typing,
            "stop typing": self._on_stop_typing,
            "private message": self._on_private_message,
            "ping": self._on_ping,
            "pong": self._on_pong,
        }

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def session(self) -> Session | None:
        return self._hub.registry.get(self._connection_id)

    @property
    def gone(self) -> bool:
        return self._gone

    def _send(self, payload: dict[str, Any]) -> None:
        fan_out(self._hub.transport, (self._connection_id,), payload)

    def report(self, error: HubError) -> None:
        """Send *error* to this connection only."""

        self._send(error.to_payload())

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle(self, event: object) -> None:
        """Process one inbound event, reporting failures back to the sender."""

        if self._gone:
            return
        if not isinstance(event, Mapping):
            self.report(InvalidEvent("Event payload must be a JSON object"))
            return
        handler = self._handlers.get(str(event.get("type", "")))
        if handler is None:
            self.report(InvalidEvent("Unsupported event type"))
            return
        try:
            await handler(event)
        except HubError as exc:
            logger.debug(
                "Rejected %s event from %s: %s", event.get("type"), self._connection_id, exc.reason
            )
            self.report(exc)
        except Exception:
            logger.exception(
                "Unexpected error while handling %s event from %s",
                event.get("type"),
                self._connection_id,
            )
            self._send(
                {
                    "type": "error",
                    "reason": "internal_error",
                    "detail": "Internal server error",
                    "retryable": True,
                }
            )

    async def _on_join(self, event: Mapping[str, Any]) -> None:
        await self.join(event.get("displayName"), event.get("room"))

    async def _on_chat_message(self, event: Mapping[str, Any]) -> None:
        await self.post_message(event.get("body"))

    async def _on_typing(self, event: Mapping[str, Any]) -> None:
        self.start_typing()

    async def _on_stop_typing(self, event: Mapping[str, Any]) -> None:
        self.stop_typing()

    async def _on_private_message(self, event: Mapping[str, Any]) -> None:
        await self.send_private_message(event.get("targetUserId"), event.get("body"))

    async def _on_ping(self, event: Mapping[str, Any]) -> None:
        self._send({"type": "pong"})

    async def _on_pong(self, event: Mapping[str, Any]) -> None:
        # Keepalive reply; receiving it is all that matters.
        return None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def join(self, display_name: object, room: object) -> Session:
        """Join *room*, or switch to it when the connection already has a session.

        Entering the room and replaying its history happen under the room's
        message ordering lock, so every message reaches the joiner exactly
        once: in the history or live after it.
        """

        hub = self._hub
        display_name, room = hub.registry.validate(display_name, room)
        previous = hub.registry.get(self._connection_id)
        previous_room = previous.room if previous is not None else None

        async with hub.messages.sequenced(room):
            session = await hub.registry.join(self._connection_id, display_name, room)
            switched = previous_room is not None and previous_room != session.room
            entered = previous_room is None or switched

            if switched:
                hub.typing.clear_user(session.user_id)
                hub.presence.announce_leave(previous_room, session.display_name)
                hub.presence.on_membership_changed(previous_room)

            self._send(
                {
                    "type": "session",
                    "userId": session.user_id,
                    "displayName": session.display_name,
                    "room": session.room,
                }
            )
            await self._send_history(session.room)

        if entered:
            logger.info("%s joined room %s", session.display_name, session.room)
            hub.presence.announce_join(session.room, session.display_name, exclude=self._connection_id)
            hub.presence.on_membership_changed(session.room)
        else:
            hub.presence.send_user_list(session.room, self._connection_id)
        return session

    async def _send_history(self, room: str) -> None:
        try:
            history = await self._hub.messages.fetch_recent_history(room)
        except StoreUnavailable as exc:
            logger.warning(
                "Message store unavailable; sending empty history for room %s",
                room,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            self._send({"type": "chat history", "room": room, "messages": []})
            self.report(exc)
            return
        self._send(
            {
                "type": "chat history",
                "room": room,
                "messages": [message.to_public() for message in history],
            }
        )

    async def post_message(self, body: object) -> ChatMessage:
        message = await self._hub.messages.post_room_message(self._connection_id, body)
        if not message.persisted:
            self.report(StoreUnavailable())
        return message

    def start_typing(self) -> bool:
        session = self._require_session()
        return self._hub.typing.start_typing(
            session.room, session.user_id, session.display_name, self._connection_id
        )

    def stop_typing(self) -> bool:
        session = self._require_session()
        return self._hub.typing.stop_typing(session.room, session.user_id)

    async def send_private_message(self, target_user_id: object, body: object) -> PrivateMessage:
        message = await self._hub.messages.post_private_message(
            self._connection_id, target_user_id, body
        )
        if not message.persisted:
            self.report(StoreUnavailable())
        return message

    async def disconnect(self) -> Session | None:
        """Release the connection's session and tell its room; idempotent."""

        if self._gone:
            return None
        self._gone = True
        hub = self._hub
        session = hub.registry.get(self._connection_id)
        if session is None:
            return None
        hub.typing.clear_user(session.user_id)
        removed = await hub.registry.remove(self._connection_id)
        if removed is None:
            return None
        logger.info("%s left room %s", removed.display_name, removed.room)
        hub.presence.announce_leave(removed.room, removed.display_name)
        hub.presence.on_membership_changed(removed.room)
        return removed

    def _require_session(self) -> Session:
        session = self._hub.registry.get(self._connection_id)
        if session is None:
            raise NotJoined()
        return session


__all__ = ["ConnectionLifecycleHandler"]
