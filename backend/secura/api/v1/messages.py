"""Guestbook messages API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.models import MessageStatus, MessageType
from secura.schemas.message import (
    MessageCreate,
    MessageModerationRequest,
    MessageRead,
)
from secura.services import message_service

router = APIRouter()


@router.post(
    "/events/{event_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Post a message",
)
async def create_message(
    event_id: uuid.UUID,
    payload: MessageCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> MessageRead:
    try:
        message = await message_service.create_message(
            session, event_id=event_id, payload=payload
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return MessageRead.model_validate(message)


@router.get(
    "/events/{event_id}/messages",
    response_model=list[MessageRead],
    summary="List messages",
)
async def list_messages(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    public: bool = False,
    message_status: Annotated[MessageStatus | None, Query(alias="status")] = None,
    message_type: Annotated[MessageType | None, Query(alias="type")] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[MessageRead]:
    """Moderation view by default; ``public=true`` returns published messages only."""
    try:
        messages = await message_service.list_messages(
            session,
            event_id=event_id,
            public_only=public,
            status=message_status,
            message_type=message_type,
            limit=limit,
            offset=skip,
        )
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return [MessageRead.model_validate(message) for message in messages]


@router.post(
    "/messages/{message_id}/moderate",
    response_model=MessageRead,
    summary="Approve or reject a message",
)
async def moderate_message(
    message_id: uuid.UUID,
    payload: MessageModerationRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> MessageRead:
    try:
        message = await message_service.get_message(session, message_id=message_id)
        message = await message_service.moderate_message(
            session,
            message=message,
            approve=payload.action == "approve",
            moderator=payload.moderator,
            reason=payload.reason,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return MessageRead.model_validate(message)


@router.post(
    "/messages/{message_id}/like", response_model=MessageRead, summary="Like a message"
)
async def like_message(
    message_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> MessageRead:
    try:
        message = await message_service.get_message(session, message_id=message_id)
        message = await message_service.like_message(session, message=message)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return MessageRead.model_validate(message)


@router.delete(
    "/messages/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a message",
)
async def delete_message(
    message_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> None:
    try:
        message = await message_service.get_message(session, message_id=message_id)
        await message_service.delete_message(session, message=message)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
