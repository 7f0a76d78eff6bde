"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageRead(BaseModel):
    """Serialized representation of a room message."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    user_id: str | None = None
    display_name: str
    body: str
    room: str
    created_at: datetime


class RoomHistory(BaseModel):
    """Most recent messages of a room, oldest first."""

    room: str
    messages: list[MessageRead] = Field(default_factory=list)
