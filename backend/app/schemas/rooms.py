"""Schemas describing live rooms and their members."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RoomSummary(BaseModel):
    """Room with at least one connected member."""

    name: str = Field(..., description="Room name as chosen by the clients")
    member_count: int = Field(..., ge=1, description="Number of connections in the room")


class RoomUser(BaseModel):
    """Identity currently present in a room."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    display_name: str
    joined_at: datetime | None = None


class RoomPresence(BaseModel):
    """Members of a room and who among them is typing."""

    room: str
    users: list[RoomUser] = Field(default_factory=list)
    typing: list[RoomUser] = Field(default_factory=list)
