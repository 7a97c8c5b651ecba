"""Guest invitations delivered by email."""

from __future__ import annotations

import enum
import secrets
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secura.db.base import Base
from secura.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from secura.models.guest import Guest


def generate_invitation_token() -> str:
    return secrets.token_urlsafe(32)


class InvitationStatus(str, enum.Enum):
    """Delivery and response state of an invitation."""

    PENDING = "pending"
    SENT = "sent"
    OPENED = "opened"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    FAILED = "failed"
    EXPIRED = "expired"


class Invitation(TimestampMixin, Base):
    """Invitation link sent to a guest."""

    __tablename__ = "invitations"
    __table_args__ = (
        Index("ix_invitations_event", "event_id"),
        Index("ix_invitations_guest", "guest_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("guests.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, default=generate_invitation_token
    )
    guest_email: Mapped[str | None] = mapped_column(String(255))
    guest_name: Mapped[str | None] = mapped_column(String(120))
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="email")
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    open_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    response_message: Mapped[str | None] = mapped_column(String(500))
    plus_ones: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error: Mapped[str | None] = mapped_column(Text)

    guest: Mapped["Guest"] = relationship("Guest")
