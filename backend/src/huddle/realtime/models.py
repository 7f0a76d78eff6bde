"""Value objects shared by the realtime components and their collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence, TypeVar, Union

PRIVATE_ROOM_PREFIX = "private:"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def private_room_tag(user_id: str) -> str:
    """Room-like tag under which private messages for *user_id* are stored."""

    return f"{PRIVATE_ROOM_PREFIX}{user_id}"


@dataclass(slots=True)
class Session:
    """Live binding of a connection to a claimed identity and current room."""

    connection_id: str
    user_id: str
    display_name: str
    room: str
    joined_at: datetime = field(default_factory=utcnow)

    def to_public(self) -> dict[str, Any]:
        return {"userId": self.user_id, "displayName": self.display_name}


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """Room message; ``id`` stays ``None`` when the store rejected the write."""

    display_name: str
    body: str
    room: str
    created_at: datetime = field(default_factory=utcnow)
    user_id: str | None = None
    id: int | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None

    def with_id(self, message_id: int) -> "ChatMessage":
        return replace(self, id=message_id)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "displayName": self.display_name,
            "body": self.body,
            "room": self.room,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class PrivateMessage:
    """Point-to-point message addressed by user identity."""

    from_user_id: str
    from_display_name: str
    to_user_id: str
    to_display_name: str
    body: str
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @property
    def room(self) -> str:
        return private_room_tag(self.to_user_id)

    @property
    def persisted(self) -> bool:
        return self.id is not None

    def with_id(self, message_id: int) -> "PrivateMessage":
        return replace(self, id=message_id)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromUserId": self.from_user_id,
            "fromDisplayName": self.from_display_name,
            "toUserId": self.to_user_id,
            "toDisplayName": self.to_display_name,
            "body": self.body,
            "createdAt": self.created_at.isoformat(),
        }


StoredMessage = Union[ChatMessage, PrivateMessage]
StoredMessageT = TypeVar("StoredMessageT", ChatMessage, PrivateMessage)


class Transport(Protocol):
    """Outbound delivery collaborator.

    ``send`` only hands the payload over; it must not block on the network
    and must not raise for a single unreachable recipient.
    """

    def send(self, connection_id: str, payload: dict[str, Any]) -> None:
        ...


class MessageStore(Protocol):
    """Durable message store collaborator.

    Implementations raise :class:`~huddle.realtime.errors.StoreUnavailable`
    when the backend cannot serve the request.
    """

    async def append(self, message: StoredMessageT) -> StoredMessageT:
        ...

    async def query_recent(self, room: str, limit: int) -> Sequence[ChatMessage]:
        ...


__all__ = [
    "PRIVATE_ROOM_PREFIX",
    "ChatMessage",
    "MessageStore",
    "PrivateMessage",
    "Session",
    "StoredMessage",
    "Transport",
    "private_room_tag",
    "utcnow",
]
