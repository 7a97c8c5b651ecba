"""Event schemas for CRUD and statistics."""
from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, ConfigDict, Field

from secura.models.event import EventStatus, EventType

_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class EventSettings(BaseModel):
    """Behavioural switches stored with each event."""

    qr_validation: bool = True
    multiple_entries: bool = False
    require_confirmation: bool = False
    send_reminders: bool = True
    auto_confirm: bool = False
    private_event: bool = False
    max_guests_per_user: int = Field(default=1, ge=1, le=100)
    gallery_enabled: bool = True
    offline_mode: bool = True

    model_config = ConfigDict(extra="ignore")


class EventSettingsUpdate(BaseModel):
    """Partial settings update; omitted keys keep their value."""

    qr_validation: bool | None = None
    multiple_entries: bool | None = None
    require_confirmation: bool | None = None
    send_reminders: bool | None = None
    auto_confirm: bool | None = None
    private_event: bool | None = None
    max_guests_per_user: int | None = Field(default=None, ge=1, le=100)
    gallery_enabled: bool | None = None
    offline_mode: bool | None = None


class EventCreate(BaseModel):
    """Payload for creating an event."""

    name: str = Field(min_length=3, max_length=100)
    type: EventType = EventType.OTHER
    date: dt.date
    time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    location: str = Field(min_length=3, max_length=200)
    capacity: int = Field(default=0, ge=0, le=100000)
    description: str | None = Field(default=None, max_length=1000)
    welcome_message: str | None = Field(default=None, max_length=500)
    organizer_id: str | None = Field(default=None, max_length=64)
    active: bool = True
    settings: EventSettingsUpdate | None = None

    model_config = ConfigDict(str_strip_whitespace=True)


class EventUpdate(BaseModel):
    """Mutable event fields."""

    name: str | None = Field(default=None, min_length=3, max_length=100)
    type: EventType | None = None
    date: dt.date | None = None
    time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    location: str | None = Field(default=None, min_length=3, max_length=200)
    capacity: int | None = Field(default=None, ge=0, le=100000)
    description: str | None = Field(default=None, max_length=1000)
    welcome_message: str | None = Field(default=None, max_length=500)
    status: EventStatus | None = None

    model_config = ConfigDict(str_strip_whitespace=True)


class EventDuplicateRequest(BaseModel):
    """Options for copying an event."""

    name: str | None = Field(default=None, min_length=3, max_length=100)
    date: dt.date | None = None


class EventStats(BaseModel):
    """Stored attendance statistics of an event."""

    total_guests: int
    confirmed_guests: int
    scanned_guests: int
    total_scans: int
    scan_rate: float
    last_scan_at: dt.datetime | None = None
    available_spots: int | None = None
    is_full: bool
    capacity_rate: float = 0
    confirmation_rate: float = 0
    average_scans_per_guest: float = 0
    is_past: bool
    is_today: bool
    days_until: int


class EventRead(BaseModel):
    """Serialized event response."""

    id: uuid.UUID
    organizer_id: str | None = None
    name: str
    type: EventType
    date: dt.date
    time: str | None = None
    location: str
    capacity: int
    description: str | None = None
    welcome_message: str | None = None
    active: bool
    status: EventStatus
    settings: EventSettings
    total_guests: int
    confirmed_guests: int
    scanned_guests: int
    total_scans: int
    scan_rate: float
    last_scan_at: dt.datetime | None = None
    is_full: bool
    is_past: bool
    is_today: bool
    days_until: int
    available_spots: int | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)
