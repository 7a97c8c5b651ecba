"""Signed QR codes for guest invitations and event tables."""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from secura.db.base import Base
from secura.models.guest import JSONB_TYPE
from secura.models.mixins import TimestampMixin

DEFAULT_TABLE_CAPACITY = 8


class QRCodeType(str, enum.Enum):
    """What a QR code grants access to."""

    INVITATION = "invitation"
    TABLE = "table"


class QRCode(TimestampMixin, Base):
    """A stored QR payload; tables also track their seated guests."""

    __tablename__ = "qr_codes"
    __table_args__ = (
        UniqueConstraint("event_id", "type", "guest_id", name="uq_qr_codes_guest"),
        UniqueConstraint(
            "event_id", "type", "table_number", name="uq_qr_codes_table"
        ),
        Index("ix_qr_codes_event", "event_id"),
        Index("ix_qr_codes_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    guest_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("guests.id", ondelete="CASCADE"), nullable=True
    )
    type: Mapped[QRCodeType] = mapped_column(Enum(QRCodeType), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
    raw_data: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_expired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scan_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_scans: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scan_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, nullable=False, default=list
    )
    generated_by: Mapped[str] = mapped_column(
        String(64), nullable=False, default="system"
    )

    # Table codes only.
    table_number: Mapped[str | None] = mapped_column(String(20))
    table_name: Mapped[str | None] = mapped_column(String(100))
    capacity: Mapped[int | None] = mapped_column(Integer)
    location: Mapped[str | None] = mapped_column(String(200))
    category: Mapped[str | None] = mapped_column(String(50))
    content: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, nullable=False, default=dict
    )
    assigned_guests: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, nullable=False, default=list
    )

    @property
    def is_table(self) -> bool:
        return self.type == QRCodeType.TABLE

    @property
    def guest_count(self) -> int:
        return len(self.assigned_guests or [])

    @property
    def seats_taken(self) -> int:
        return sum(int(entry.get("seats", 1)) for entry in self.assigned_guests or [])

    @property
    def available_seats(self) -> int:
        return max(0, (self.capacity or 0) - self.seats_taken)

    @property
    def is_full(self) -> bool:
        return self.is_table and self.seats_taken >= (self.capacity or 0)

    @property
    def occupancy_rate(self) -> int:
        if not self.capacity:
            return 0
        return round(self.seats_taken / self.capacity * 100)

    def expiry_passed(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= (now or datetime.now(UTC))

    @property
    def can_be_scanned(self) -> bool:
        return (
            self.active
            and not self.is_expired
            and not self.expiry_passed()
            and self.scan_count < self.max_scans
        )
