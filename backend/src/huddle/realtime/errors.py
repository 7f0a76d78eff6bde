"""Error kinds reported back to the connection that caused them."""

from __future__ import annotations


class HubError(Exception):
    """Base class for failures surfaced to clients as ``error`` events."""

    reason: str = "error"
    retryable: bool = False

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.reason
        super().__init__(self.detail)

    def to_payload(self) -> dict[str, object]:
        return {
            "type": "error",
            "reason": self.reason,
            "detail": self.detail,
            "retryable": self.retryable,
        }


class InvalidJoin(HubError):
    """Display name and room are required."""

    reason = "invalid_join"


class NotJoined(HubError):
    """Join a room before sending events."""

    reason = "not_joined"


class InvalidMessage(HubError):
    """Invalid message."""

    reason = "invalid_message"


class RecipientNotFound(HubError):
    """User not found."""

    reason = "recipient_not_found"


class StoreUnavailable(HubError):
    """Message store is unavailable; the message was delivered but not saved."""

    reason = "store_unavailable"
    retryable = True


class InvalidEvent(HubError):
    """Invalid event payload."""

    reason = "invalid_event"


__all__ = [
    "HubError",
    "InvalidJoin",
    "NotJoined",
    "InvalidMessage",
    "RecipientNotFound",
    "StoreUnavailable",
    "InvalidEvent",
]
