"""Database models package."""

from .base import Base
from .messages import Message

__all__ = ["Base", "Message"]
