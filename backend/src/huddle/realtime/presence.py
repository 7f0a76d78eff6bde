"""Room presence broadcasts."""

from __future__ import annotations

from typing import Any

from .fanout import fan_out
from .models import Transport
from .sessions import SessionRegistry


class PresenceNotifier:
    """Push the live user list and join/leave notices to room members."""

    def __init__(self, registry: SessionRegistry, transport: Transport) -> None:
        self._registry = registry
        self._transport = transport

    def user_list(self, room: str) -> list[dict[str, Any]]:
        return [session.to_public() for session in self._registry.members(room)]

    def _user_list_payload(self, room: str) -> dict[str, Any]:
        return {"type": "user list", "room": room, "users": self.user_list(room)}

    def on_membership_changed(self, room: str) -> list[dict[str, Any]]:
        """Deliver the room's current user list to every member of the room."""

        payload = self._user_list_payload(room)
        fan_out(self._transport, self._registry.index.members_of(room), payload)
        return payload["users"]

    def send_user_list(self, room: str, connection_id: str) -> None:
        fan_out(self._transport, (connection_id,), self._user_list_payload(room))

    def announce_join(self, room: str, display_name: str, *, exclude: str | None = None) -> None:
        payload = {
            "type": "user joined",
            "room": room,
            "displayName": display_name,
            "notice": f"{display_name} has joined the room",
        }
        fan_out(
            self._transport,
            self._registry.index.members_of(room),
            payload,
            exclude=(exclude,) if exclude is not None else (),
        )

    def announce_leave(self, room: str, display_name: str) -> None:
        payload = {
            "type": "user left",
            "room": room,
            "displayName": display_name,
            "notice": f"{display_name} has left the room",
        }
        fan_out(self._transport, self._registry.index.members_of(room), payload)


__all__ = ["PresenceNotifier"]
