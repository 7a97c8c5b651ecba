"""Pydantic schemas for guests and check-in operations."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    field_validator,
)

from secura.core.config import get_settings
from secura.models.guest import DEFAULT_GUEST_CATEGORY, GuestStatus

PHONE_PATTERN = re.compile(r"^[\d\s+\-()]{8,20}$")
NAME_MAX_LENGTH = 50
COMPANY_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500
NAME_REQUIRED_MESSAGE = "first_name or last_name is required"

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def validate_email_value(value: str | None) -> str | None:
    """Lowercase and check an optional email address."""
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return _EMAIL_ADAPTER.validate_python(value.lower())
    except ValueError as exc:
        raise ValueError("invalid email format") from exc


def validate_phone_value(value: str | None) -> str | None:
    value = _blank_to_none(value)
    if value is None:
        return None
    if not PHONE_PATTERN.match(value):
        raise ValueError("invalid phone format")
    return value


def validate_seats_value(value: int) -> int:
    maximum = get_settings().max_seats_per_guest
    if value > maximum:
        raise ValueError(f"seats must be at most {maximum}")
    return value


class GuestMetadata(BaseModel):
    """Seating and invitation details attached to a guest."""

    category: str = Field(default=DEFAULT_GUEST_CATEGORY, max_length=50)
    table_number: str | None = Field(default=None, max_length=20)
    special_requirements: str | None = Field(default=None, max_length=500)
    invitation_sent: bool = False
    confirmed: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("table_number", mode="before")
    @classmethod
    def _coerce_table(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)


class GuestMetadataUpdate(BaseModel):
    category: str | None = Field(default=None, max_length=50)
    table_number: str | None = Field(default=None, max_length=20)
    special_requirements: str | None = Field(default=None, max_length=500)

    @field_validator("table_number", mode="before")
    @classmethod
    def _coerce_table(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class GuestBase(BaseModel):
    """Shared guest fields."""

    first_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    last_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    email: str | None = None
    phone: str | None = None
    company: str | None = Field(default=None, max_length=COMPANY_MAX_LENGTH)
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)
    seats: int = Field(default=1, ge=1)
    status: GuestStatus = GuestStatus.PENDING

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: Any) -> Any:
        return validate_email_value(value)

    @field_validator("phone", mode="before")
    @classmethod
    def _validate_phone(cls, value: Any) -> Any:
        return validate_phone_value(value)

    @field_validator("company", "notes", mode="before")
    @classmethod
    def _empty_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("seats")
    @classmethod
    def _validate_seats(cls, value: int) -> int:
        return validate_seats_value(value)


class GuestCreate(GuestBase):
    """Payload for adding a guest to an event."""

    event_id: uuid.UUID
    metadata: GuestMetadata = Field(default_factory=GuestMetadata)


class GuestUpdate(BaseModel):
    """Mutable guest fields."""

    first_name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)
    last_name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)
    email: str | None = None
    phone: str | None = None
    company: str | None = Field(default=None, max_length=COMPANY_MAX_LENGTH)
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)
    seats: int | None = Field(default=None, ge=1)
    status: GuestStatus | None = None
    metadata: GuestMetadataUpdate | None = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: Any) -> Any:
        if value is None:
            return None
        return validate_email_value(value) or ""

    @field_validator("phone", mode="before")
    @classmethod
    def _validate_phone(cls, value: Any) -> Any:
        if value is None:
            return None
        return validate_phone_value(value) or ""

    @field_validator("seats")
    @classmethod
    def _validate_seats(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return validate_seats_value(value)


class GuestRead(BaseModel):
    """Serialized guest response."""

    id: uuid.UUID
    event_id: uuid.UUID
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    seats: int
    status: GuestStatus
    qr_code: str
    scanned: bool
    scanned_at: datetime | None = None
    scan_count: int
    scan_history: list[dict[str, Any]] = Field(default_factory=list)
    confirmation_history: list[dict[str, Any]] = Field(default_factory=list)
    metadata: GuestMetadata = Field(
        validation_alias=AliasChoices("meta", "metadata")
    )
    is_confirmed: bool
    can_be_scanned: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestScanRequest(BaseModel):
    """Details of the scanning device or person."""

    scanner_id: str = Field(default="manual", max_length=64)
    scanner_name: str = Field(default="Manual check-in", max_length=100)
    location: str | None = Field(default=None, max_length=200)


class GuestConfirmRequest(BaseModel):
    method: str = Field(default="manual", max_length=50)
    confirmed_by: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=200)


class GuestCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=200)


class GuestBulkIdsRequest(BaseModel):
    guest_ids: list[uuid.UUID] = Field(min_length=1)


class GuestBulkDeleteRequest(GuestBulkIdsRequest):
    pass


class GuestBulkConfirmRequest(GuestBulkIdsRequest):
    method: str = Field(default="bulk", max_length=50)
    confirmed_by: str | None = Field(default=None, max_length=64)


class GuestTableAssignment(BaseModel):
    guest_id: uuid.UUID
    table_number: str | None = Field(default=None, max_length=20)

    @field_validator("table_number", mode="before")
    @classmethod
    def _coerce_table(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)


class GuestAssignTableRequest(BaseModel):
    table_number: str | None = Field(default=None, max_length=20)

    @field_validator("table_number", mode="before")
    @classmethod
    def _coerce_table(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)


class GuestBulkTablesRequest(BaseModel):
    assignments: list[GuestTableAssignment] = Field(min_length=1)


class GuestBulkOperationResult(BaseModel):
    """Outcome of a bulk confirm/delete/assign call."""

    processed: int
    succeeded: int
    failed: int
    errors: list[dict[str, str]] = Field(default_factory=list)


class GuestStats(BaseModel):
    """Aggregated guest statistics for an event."""

    total: int
    by_status: dict[str, int]
    scanned: int
    not_scanned: int
    total_scans: int
    scan_rate: float
    confirmed: int
    confirmation_rate: float
    total_seats: int
    confirmed_seats: int
    categories: dict[str, int]
    tables: dict[str, int]
    invitations_sent: int
    recent_scans: list[dict[str, Any]] = Field(default_factory=list)
