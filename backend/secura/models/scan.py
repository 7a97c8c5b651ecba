"""Check-in scan records."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from secura.db.base import Base
from secura.models.mixins import TimestampMixin, utcnow


class ScanType(str, enum.Enum):
    """Why a QR code was scanned."""

    ENTRY = "entry"
    EXIT = "exit"
    VALIDATION = "validation"


class Scan(TimestampMixin, Base):
    """A single QR scan at an event entrance."""

    __tablename__ = "scans"
    __table_args__ = (
        Index("ix_scans_event", "event_id"),
        Index("ix_scans_guest", "guest_id"),
        Index("ix_scans_scanned_at", "scanned_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    guest_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("guests.id", ondelete="CASCADE"), nullable=True
    )
    scanner_id: Mapped[str | None] = mapped_column(String(64))
    scanner_name: Mapped[str | None] = mapped_column(String(100))
    location: Mapped[str | None] = mapped_column(String(200))
    type: Mapped[ScanType] = mapped_column(
        Enum(ScanType), nullable=False, default=ScanType.ENTRY
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text)
    error_code: Mapped[str | None] = mapped_column(String(32))
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
