"""Typing indicators with implicit expiry."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Dict

from .fanout import fan_out
from .models import Transport
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TypingEntry:
    room: str
    display_name: str
    connection_id: str
    timer: asyncio.Task[None] | None = None


class TypingCoordinator:
    """Track who is typing where and tell the rest of the room.

    Entries are keyed by user id: a user types in at most one room, the one
    their session is in. Each entry owns one expiry task. Arming, rearming
    and cancelling happen without an intervening ``await`` so a stale timer
    can never emit a stop after a newer typing signal.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        transport: Transport,
        *,
        timeout_seconds: float = 3.0,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._timeout = timeout_seconds
        self._entries: Dict[str, _TypingEntry] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def is_typing(self, room: str, user_id: str) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.room == room

    def typing_in(self, room: str) -> list[dict[str, str]]:
        users = [
            {"userId": user_id, "displayName": entry.display_name}
            for user_id, entry in self._entries.items()
            if entry.room == room
        ]
        users.sort(key=lambda item: (item["displayName"].lower(), item["userId"]))
        return users

    def start_typing(
        self, room: str, user_id: str, display_name: str, connection_id: str
    ) -> bool:
        """Mark *user_id* as typing in *room*; returns ``True`` if peers were notified."""

        entry = self._entries.get(user_id)
        if entry is not None and entry.room != room:
            self.stop_typing(entry.room, user_id)
            entry = None

        notified = False
        if entry is None:
            entry = _TypingEntry(room=room, display_name=display_name, connection_id=connection_id)
            self._entries[user_id] = entry
            self._emit("typing", room, user_id, entry)
            notified = True

        self._arm(user_id, entry)
        return notified

    def stop_typing(self, room: str, user_id: str) -> bool:
        """Clear the typing state; returns ``False`` when the user was idle."""

        entry = self._entries.get(user_id)
        if entry is None or entry.room != room:
            return False
        self._entries.pop(user_id, None)
        self._cancel_timer(entry)
        self._emit("stop typing", room, user_id, entry)
        return True

    def clear_user(self, user_id: str) -> bool:
        """Stop any typing state of *user_id*, wherever it is."""

        entry = self._entries.get(user_id)
        if entry is None:
            return False
        return self.stop_typing(entry.room, user_id)

    async def close(self) -> None:
        """Cancel every pending expiry without notifying anyone."""

        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            task = entry.timer
            entry.timer = None
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    def _emit(self, event_type: str, room: str, user_id: str, entry: _TypingEntry) -> None:
        payload: dict[str, Any] = {
            "type": event_type,
            "room": room,
            "userId": user_id,
            "displayName": entry.display_name,
        }
        fan_out(
            self._transport,
            self._registry.index.members_of(room),
            payload,
            exclude=(entry.connection_id,),
        )

    def _arm(self, user_id: str, entry: _TypingEntry) -> None:
        self._cancel_timer(entry)

        async def expire() -> None:
            try:
                await asyncio.sleep(self._timeout)
            except asyncio.CancelledError:
                return
            if self._entries.get(user_id) is not entry or entry.timer is not task:
                return
            entry.timer = None
            logger.debug("Typing indicator of %s in %s expired", user_id, entry.room)
            self.stop_typing(entry.room, user_id)

        task = asyncio.create_task(expire(), name=f"typing:{entry.room}:{user_id}")
        entry.timer = task

    @staticmethod
    def _cancel_timer(entry: _TypingEntry) -> None:
        task = entry.timer
        entry.timer = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()


__all__ = ["TypingCoordinator"]
