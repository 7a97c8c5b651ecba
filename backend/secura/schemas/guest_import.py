"""Schemas used by the bulk guest import."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from secura.models.guest import GuestStatus
from secura.schemas.guest import (
    COMPANY_MAX_LENGTH,
    NAME_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    GuestRead,
    validate_email_value,
    validate_phone_value,
    validate_seats_value,
)


class GuestImportCandidate(BaseModel):
    """Declarative rules applied to a normalized import row."""

    event_id: str = Field(min_length=1)
    first_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    last_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    email: str | None = None
    phone: str | None = None
    company: str | None = Field(default=None, max_length=COMPANY_MAX_LENGTH)
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)
    seats: int = Field(default=1, ge=1)
    status: GuestStatus = GuestStatus.PENDING
    category: str = Field(max_length=50)
    table_number: str | None = Field(default=None, max_length=20)
    special_requirements: str | None = Field(default=None, max_length=500)

    @field_validator("event_id", mode="before")
    @classmethod
    def _event_required(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: Any) -> Any:
        return validate_email_value(value)

    @field_validator("phone", mode="before")
    @classmethod
    def _validate_phone(cls, value: Any) -> Any:
        return validate_phone_value(value)

    @field_validator("seats")
    @classmethod
    def _validate_seats(cls, value: int) -> int:
        return validate_seats_value(value)


class GuestImportRequest(BaseModel):
    """JSON import payload: raw rows keyed by any accepted header alias."""

    rows: list[dict[str, Any]]
    send_invitations: bool = False


class ImportRowErrorRead(BaseModel):
    index: int
    row: dict[str, Any]
    reason: str
    errors: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class GuestImportResultRead(BaseModel):
    """Partitioned outcome of an import call."""

    event_id: uuid.UUID
    total: int
    created: int
    failed: int
    errors: list[ImportRowErrorRead]
    guests: list[GuestRead]

    model_config = ConfigDict(from_attributes=True)
