"""Session registry and the room index derived from it."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Dict, Iterable, Set

from .errors import InvalidJoin
from .models import PRIVATE_ROOM_PREFIX, Session

logger = logging.getLogger(__name__)


def _new_user_id() -> str:
    return uuid.uuid4().hex


class RoomIndex:
    """Connections grouped by room.

    Only :class:`SessionRegistry` writes to the index, in the same critical
    section that changes the session, so readers never see a connection in
    two rooms or an empty room bucket.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[str]] = {}

    @classmethod
    def rebuild(cls, sessions: Iterable[Session]) -> "RoomIndex":
        index = cls()
        for session in sessions:
            index._add(session.room, session.connection_id)
        return index

    def members_of(self, room: str) -> frozenset[str]:
        return frozenset(self._rooms.get(room, ()))

    def room_of(self, connection_id: str) -> str | None:
        for room, members in self._rooms.items():
            if connection_id in members:
                return room
        return None

    def counts(self) -> dict[str, int]:
        return {room: len(members) for room, members in sorted(self._rooms.items())}

    def snapshot(self) -> dict[str, frozenset[str]]:
        return {room: frozenset(members) for room, members in self._rooms.items()}

    def __contains__(self, room: object) -> bool:
        return room in self._rooms

    def _add(self, room: str, connection_id: str) -> None:
        self._rooms.setdefault(room, set()).add(connection_id)

    def _discard(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            self._rooms.pop(room, None)


class SessionRegistry:
    """Single source of truth for who is connected as whom, and where."""

    def __init__(
        self,
        *,
        max_display_name_length: int = 32,
        max_room_name_length: int = 64,
        user_id_factory: Callable[[], str] = _new_user_id,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._connections_by_user: Dict[str, str] = {}
        self._index = RoomIndex()
        self._lock = asyncio.Lock()
        self._max_display_name_length = max_display_name_length
        self._max_room_name_length = max_room_name_length
        self._user_id_factory = user_id_factory

    @property
    def index(self) -> RoomIndex:
        return self._index

    def validate(self, display_name: object, room: object) -> tuple[str, str]:
        """Return the normalised display name and room, or raise :class:`InvalidJoin`."""

        for value in (display_name, room):
            if value is not None and not isinstance(value, str):
                raise InvalidJoin("Display name and room must be text")
        display_name = (display_name or "").strip()
        room = (room or "").strip()
        if not display_name or not room:
            raise InvalidJoin("Display name and room are required")
        if len(display_name) > self._max_display_name_length:
            raise InvalidJoin(
                f"Display name must be at most {self._max_display_name_length} characters"
            )
        if len(room) > self._max_room_name_length:
            raise InvalidJoin(f"Room name must be at most {self._max_room_name_length} characters")
        if room.startswith(PRIVATE_ROOM_PREFIX):
            raise InvalidJoin("Room name is reserved")
        return display_name, room

    async def join(self, connection_id: str, display_name: object, room: object) -> Session:
        """Create a session, or move the existing one to *room*.

        A repeated join on the same connection keeps its user id and
        display name; only the room changes.
        """

        display_name, room = self.validate(display_name, room)
        async with self._lock:
            session = self._sessions.get(connection_id)
            if session is not None:
                if session.room != room:
                    self._index._discard(session.room, connection_id)
                    logger.debug(
                        "Connection %s switching from %s to %s", connection_id, session.room, room
                    )
                    session.room = room
                    self._index._add(room, connection_id)
                return session

            user_id = self._user_id_factory()
            while user_id in self._connections_by_user:
                user_id = self._user_id_factory()
            session = Session(
                connection_id=connection_id,
                user_id=user_id,
                display_name=display_name,
                room=room,
            )
            self._sessions[connection_id] = session
            self._connections_by_user[user_id] = connection_id
            self._index._add(room, connection_id)
            return session

    async def remove(self, connection_id: str) -> Session | None:
        async with self._lock:
            session = self._sessions.pop(connection_id, None)
            if session is None:
                return None
            self._connections_by_user.pop(session.user_id, None)
            self._index._discard(session.room, connection_id)
            return session

    def get(self, connection_id: str) -> Session | None:
        return self._sessions.get(connection_id)

    def find_by_user(self, user_id: str) -> Session | None:
        connection_id = self._connections_by_user.get(user_id)
        if connection_id is None:
            return None
        return self._sessions.get(connection_id)

    def members(self, room: str) -> list[Session]:
        """Sessions currently in *room*, ordered for display."""

        sessions = [
            self._sessions[connection_id]
            for connection_id in self._index.members_of(room)
            if connection_id in self._sessions
        ]
        sessions.sort(key=lambda item: (item.display_name.lower(), item.user_id))
        return sessions

    def rooms(self) -> dict[str, int]:
        return self._index.counts()

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions


__all__ = ["RoomIndex", "SessionRegistry"]
