"""Event model."""

from __future__ import annotations

import datetime as dt
import enum
import math
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
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
    from secura.models.guest import Guest


JSONB_TYPE = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")

DEFAULT_EVENT_SETTINGS: dict[str, Any] = {
    "qr_validation": True,
    "multiple_entries": False,
    "require_confirmation": False,
    "send_reminders": True,
    "auto_confirm": False,
    "private_event": False,
    "max_guests_per_user": 1,
    "gallery_enabled": True,
    "offline_mode": True,
}


class EventType(str, enum.Enum):
    """Kinds of events that can be organised."""

    WEDDING = "wedding"
    CONFERENCE = "conference"
    PARTY = "party"
    CORPORATE = "corporate"
    OTHER = "other"


class EventStatus(str, enum.Enum):
    """Lifecycle status of an event."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Event(TimestampMixin, Base):
    """An organised event with its guest list and check-in statistics."""

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_organizer", "organizer_id"),
        Index("ix_events_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    organizer_id: Mapped[str | None] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[EventType] = mapped_column(
        Enum(EventType), nullable=False, default=EventType.OTHER
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[str | None] = mapped_column(String(5))
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text)
    welcome_message: Mapped[str | None] = mapped_column(String(500))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus), nullable=False, default=EventStatus.ACTIVE
    )
    settings: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, nullable=False, default=lambda: dict(DEFAULT_EVENT_SETTINGS)
    )

    total_guests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confirmed_guests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scanned_guests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_scans: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scan_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_scan_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))

    guests: Mapped[list["Guest"]] = relationship(
        "Guest",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def _starts_at(self, default_time: dt.time) -> dt.datetime:
        at = default_time
        if self.time:
            hours, _, minutes = self.time.partition(":")
            at = dt.time(int(hours), int(minutes))
        return dt.datetime.combine(self.date, at, tzinfo=dt.UTC)

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and self.confirmed_guests >= self.capacity

    @property
    def is_past(self) -> bool:
        return self._starts_at(dt.time(23, 59, 59)) < dt.datetime.now(dt.UTC)

    @property
    def is_today(self) -> bool:
        return self.date == dt.datetime.now(dt.UTC).date()

    @property
    def days_until(self) -> int:
        delta = self._starts_at(dt.time(0, 0)) - dt.datetime.now(dt.UTC)
        return math.ceil(delta.total_seconds() / 86400)

    @property
    def available_spots(self) -> int | None:
        """Remaining confirmed places, ``None`` when capacity is unlimited."""
        if self.capacity == 0:
            return None
        return max(0, self.capacity - self.confirmed_guests)
