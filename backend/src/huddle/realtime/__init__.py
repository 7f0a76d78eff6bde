"""Session, presence, typing and message distribution for chat rooms."""

from .errors import (  # noqa: F401
    HubError,
    InvalidEvent,
    InvalidJoin,
    InvalidMessage,
    NotJoined,
    RecipientNotFound,
    StoreUnavailable,
)
from .hub import Hub  # noqa: F401
from .lifecycle import ConnectionLifecycleHandler  # noqa: F401
from .messaging import MessageDistributor  # noqa: F401
from .models import (  # noqa: F401
    ChatMessage,
    MessageStore,
    PrivateMessage,
    Session,
    Transport,
    private_room_tag,
)
from .presence import PresenceNotifier  # noqa: F401
from .sessions import RoomIndex, SessionRegistry  # noqa: F401
from .typing_state import TypingCoordinator  # noqa: F401

__all__ = [
    "Hub",
    "ConnectionLifecycleHandler",
    "SessionRegistry",
    "RoomIndex",
    "PresenceNotifier",
    "TypingCoordinator",
    "MessageDistributor",
    "Session",
    "ChatMessage",
    "PrivateMessage",
    "MessageStore",
    "Transport",
    "private_room_tag",
    "HubError",
    "InvalidJoin",
    "NotJoined",
    "InvalidMessage",
    "RecipientNotFound",
    "StoreUnavailable",
    "InvalidEvent",
]
