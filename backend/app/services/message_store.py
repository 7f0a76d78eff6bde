"""SQLAlchemy implementation of the hub's message store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

import anyio
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from huddle.realtime import ChatMessage, PrivateMessage, StoreUnavailable
from huddle.realtime.models import StoredMessageT

from app.database import SessionLocal
from app.models import Message
from app.monitoring.metrics import store_errors_total

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite drops the offset of timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_chat_message(record: Message) -> ChatMessage:
    return ChatMessage(
        id=record.id,
        display_name=record.display_name,
        body=record.body,
        room=record.room,
        user_id=record.user_id,
        created_at=_aware(record.created_at),
    )


def _to_record(message: ChatMessage | PrivateMessage) -> Message:
    if isinstance(message, PrivateMessage):
        return Message(
            room=message.room,
            display_name=message.from_display_name,
            body=message.body,
            user_id=message.from_user_id,
            recipient_id=message.to_user_id,
            recipient_display_name=message.to_display_name,
            created_at=message.created_at,
        )
    return Message(
        room=message.room,
        display_name=message.display_name,
        body=message.body,
        user_id=message.user_id,
        created_at=message.created_at,
    )


class SqlMessageStore:
    """Append and query messages through short-lived SQLAlchemy sessions.

    Blocking database work runs in a worker thread so the event loop keeps
    serving other connections.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    async def append(self, message: StoredMessageT) -> StoredMessageT:
        return await anyio.to_thread.run_sync(self.append_sync, message)

    async def query_recent(self, room: str, limit: int) -> Sequence[ChatMessage]:
        return await anyio.to_thread.run_sync(self.query_recent_sync, room, limit)

    def append_sync(self, message: StoredMessageT) -> StoredMessageT:
        record = _to_record(message)
        with self._session_factory() as db:
            try:
                db.add(record)
                db.flush()
                message_id = record.id
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                store_errors_total.labels("append").inc()
                logger.debug("Failed to append message to %s", message.room, exc_info=True)
                raise StoreUnavailable() from exc
        return message.with_id(message_id)

    def query_recent_sync(self, room: str, limit: int) -> list[ChatMessage]:
        stmt = (
            select(Message)
            .where(Message.room == room)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        with self._session_factory() as db:
            try:
                records = list(db.execute(stmt).scalars())
            except SQLAlchemyError as exc:
                store_errors_total.labels("query").inc()
                logger.debug("Failed to load history of %s", room, exc_info=True)
                raise StoreUnavailable("Message history is unavailable") from exc
            messages = [to_chat_message(record) for record in records]
        messages.reverse()
        return messages


__all__ = ["SqlMessageStore", "to_chat_message"]
