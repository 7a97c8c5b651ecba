"""Invitation schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from secura.models.invitation import InvitationStatus


class InvitationRead(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    guest_id: uuid.UUID
    token: str
    guest_email: str | None = None
    guest_name: str | None = None
    channel: str
    status: InvitationStatus
    sent_at: datetime | None = None
    opened_at: datetime | None = None
    open_count: int
    responded_at: datetime | None = None
    response_message: str | None = None
    plus_ones: int
    expires_at: datetime | None = None
    error: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationSendRequest(BaseModel):
    guest_id: uuid.UUID


class InvitationResponseRequest(BaseModel):
    """Guest answer submitted through the invitation link."""

    response: Literal["accept", "decline"]
    message: str | None = Field(default=None, max_length=500)
    plus_ones: int = Field(default=0, ge=0, le=10)


class InvitationPublicView(BaseModel):
    """What an invitee sees when opening their link."""

    token: str
    status: InvitationStatus
    guest_name: str | None = None
    event_name: str
    event_date: date
    event_time: str | None = None
    event_location: str
    welcome_message: str | None = None
    expires_at: datetime | None = None


class BulkInvitationResult(BaseModel):
    event_id: uuid.UUID
    sent: int
    failed: int
    skipped: int
    invitations: list[InvitationRead] = Field(default_factory=list)
