"""Guestbook message services."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.errors import NotFoundError, SecuraError
from secura.models import Message, MessageStatus, MessageType
from secura.schemas.message import MessageCreate
from secura.services import event_service

logger = logging.getLogger(__name__)


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise


async def create_message(
    session: AsyncSession, *, event_id: uuid.UUID, payload: MessageCreate
) -> Message:
    """Post a message; it stays pending until moderated."""
    event = await event_service.get_event(session, event_id=event_id)
    if not event.active:
        raise SecuraError("Event is not active", code="EVENT_INACTIVE")
    message = Message(
        event_id=event_id,
        author=payload.author,
        author_email=payload.author_email,
        content=payload.content,
        type=payload.type,
        is_public=payload.is_public,
    )
    session.add(message)
    await _commit(session)
    await session.refresh(message)
    logger.info("Message %s posted on event %s", message.id, event_id)
    return message


async def get_message(session: AsyncSession, *, message_id: uuid.UUID) -> Message:
    message = await session.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message")
    return message


async def list_messages(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    public_only: bool = False,
    status: MessageStatus | None = None,
    message_type: MessageType | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Message]:
    """Return messages newest first; the public view only shows published ones."""
    await event_service.get_event(session, event_id=event_id)
    stmt = select(Message).where(Message.event_id == event_id)
    if public_only:
        stmt = stmt.where(
            Message.status == MessageStatus.APPROVED, Message.is_public.is_(True)
        )
    elif status:
        stmt = stmt.where(Message.status == status)
    if message_type:
        stmt = stmt.where(Message.type == message_type)
    stmt = stmt.order_by(Message.created_at.desc()).offset(offset).limit(min(limit, 200))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def moderate_message(
    session: AsyncSession,
    *,
    message: Message,
    approve: bool,
    moderator: str,
    reason: str | None = None,
) -> Message:
    """Approve (publishes the message) or reject (hides it)."""
    now = datetime.now(UTC)
    if approve:
        message.status = MessageStatus.APPROVED
        message.is_public = True
        message.published_at = now
    else:
        if not reason:
            raise ValueError("A reason is required to reject a message")
        message.status = MessageStatus.REJECTED
        message.is_public = False
    message.moderated_at = now
    message.moderated_by = moderator
    message.moderation_reason = reason
    await _commit(session)
    await session.refresh(message)
    logger.info(
        "Message %s %s by %s",
        message.id,
        "approved" if approve else "rejected",
        moderator,
    )
    return message


async def like_message(session: AsyncSession, *, message: Message) -> Message:
    if not message.is_published:
        raise SecuraError("Only published messages can be liked")
    message.likes = (message.likes or 0) + 1
    await _commit(session)
    await session.refresh(message)
    return message


async def delete_message(session: AsyncSession, *, message: Message) -> None:
    message_id = message.id
    await session.delete(message)
    await _commit(session)
    logger.info("Message %s deleted", message_id)
