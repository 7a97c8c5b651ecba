"""Guestbook message schemas."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from secura.models.message import MessageStatus, MessageType


class MessageCreate(BaseModel):
    """Payload for posting a message on an event."""

    author: str = Field(min_length=1, max_length=100)
    author_email: EmailStr | None = None
    content: str = Field(min_length=1, max_length=1000)
    type: MessageType = MessageType.MESSAGE
    is_public: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)


class MessageModerationRequest(BaseModel):
    action: Literal["approve", "reject"]
    moderator: str = Field(min_length=1, max_length=64)
    reason: str | None = Field(default=None, max_length=500)


class MessageRead(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    author: str
    author_email: str | None = None
    content: str
    type: MessageType
    status: MessageStatus
    is_public: bool
    is_published: bool
    likes: int
    moderated_at: datetime | None = None
    moderated_by: str | None = None
    moderation_reason: str | None = None
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
