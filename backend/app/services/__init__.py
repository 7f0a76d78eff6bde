"""Application service helpers."""

from .hub import configure_hub, get_hub, get_transport, shutdown_hub, startup_hub
from .message_store import SqlMessageStore
from .transport import WebSocketTransport

__all__ = [
    "configure_hub",
    "get_hub",
    "get_transport",
    "shutdown_hub",
    "startup_hub",
    "SqlMessageStore",
    "WebSocketTransport",
]
