"""Guest model and check-in state."""

from __future__ import annotations

import enum
import secrets
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secura.db.base import Base
from secura.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from secura.models.event import Event


JSONB_TYPE = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")

DEFAULT_GUEST_CATEGORY = "standard"


def generate_qr_token() -> str:
    return secrets.token_urlsafe(16)


class GuestStatus(str, enum.Enum):
    """Attendance status of a guest."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Guest(TimestampMixin, Base):
    """A person invited to an event."""

    __tablename__ = "guests"
    __table_args__ = (
        Index("ix_guests_event", "event_id"),
        Index("ix_guests_event_email", "event_id", "email"),
        Index("ix_guests_event_status", "event_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))
    company: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(String(500))
    seats: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[GuestStatus] = mapped_column(
        Enum(GuestStatus), nullable=False, default=GuestStatus.PENDING
    )
    qr_code: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, default=generate_qr_token
    )

    scanned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scan_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, nullable=False, default=list
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmation_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, nullable=False, default=list
    )

    # Metadata block exposed to clients as ``metadata``.
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_GUEST_CATEGORY
    )
    table_number: Mapped[str | None] = mapped_column(String(20))
    special_requirements: Mapped[str | None] = mapped_column(String(500))
    invitation_sent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    event: Mapped["Event"] = relationship("Event", back_populates="guests")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def meta(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "table_number": self.table_number,
            "special_requirements": self.special_requirements,
            "invitation_sent": self.invitation_sent,
            "confirmed": self.confirmed,
        }

    @property
    def is_confirmed(self) -> bool:
        return self.status == GuestStatus.CONFIRMED or self.confirmed

    @property
    def can_be_scanned(self) -> bool:
        return self.is_confirmed and not self.scanned
