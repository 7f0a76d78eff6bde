"""Read-only views of live rooms."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from huddle.realtime import Hub, StoreUnavailable
from huddle.realtime.models import PRIVATE_ROOM_PREFIX

from app.config import get_settings
from app.schemas import MessageRead, RoomHistory, RoomPresence, RoomSummary, RoomUser
from app.services.hub import get_hub

router = APIRouter(prefix="/rooms", tags=["rooms"])

settings = get_settings()

logger = logging.getLogger(__name__)


def _ensure_active_room(room: str, hub: Hub) -> None:
    if room not in hub.registry.index:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")


@router.get("", response_model=list[RoomSummary])
def list_rooms(hub: Hub = Depends(get_hub)) -> list[RoomSummary]:
    """Return every room that currently has members."""

    return [
        RoomSummary(name=name, member_count=count) for name, count in hub.registry.rooms().items()
    ]


@router.get("/{room}/users", response_model=RoomPresence)
def read_room_presence(room: str, hub: Hub = Depends(get_hub)) -> RoomPresence:
    """Return the members of *room* and who is typing."""

    _ensure_active_room(room, hub)
    users = [
        RoomUser(
            user_id=session.user_id,
            display_name=session.display_name,
            joined_at=session.joined_at,
        )
        for session in hub.registry.members(room)
    ]
    typing = [
        RoomUser(user_id=entry["userId"], display_name=entry["displayName"])
        for entry in hub.typing.typing_in(room)
    ]
    return RoomPresence(room=room, users=users, typing=typing)


@router.get("/{room}/messages", response_model=RoomHistory)
async def read_room_history(
    room: str,
    limit: int | None = Query(default=None, ge=1, le=settings.chat_history_max_limit),
    hub: Hub = Depends(get_hub),
) -> RoomHistory:
    """Return the most recent messages of *room*, oldest first."""

    if room.startswith(PRIVATE_ROOM_PREFIX):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    try:
        messages = await hub.messages.fetch_recent_history(room, limit)
    except StoreUnavailable as exc:
        logger.warning("History of %s requested while the message store is unavailable", room)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.detail
        ) from exc
    return RoomHistory(
        room=room,
        messages=[MessageRead.model_validate(message) for message in messages],
    )
