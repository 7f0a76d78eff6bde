"""Pydantic schemas exposed by the REST API."""

from .messages import MessageRead, RoomHistory
from .rooms import RoomPresence, RoomSummary, RoomUser

__all__ = [
    "MessageRead",
    "RoomHistory",
    "RoomPresence",
    "RoomSummary",
    "RoomUser",
]
