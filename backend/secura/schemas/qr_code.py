"""QR code, table seating and QR statistics schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from secura.models.qr_code import DEFAULT_TABLE_CAPACITY, QRCodeType


class TableAssignmentRead(BaseModel):
    guest_id: uuid.UUID
    guest_name: str
    seats: int
    assigned_at: datetime
    assigned_by: str
    notes: str | None = None


class QRCodeRead(BaseModel):
    """Stored QR code; ``raw_data`` is the text to encode in the image."""

    id: uuid.UUID
    event_id: uuid.UUID
    guest_id: uuid.UUID | None = None
    type: QRCodeType
    payload: dict[str, Any]
    raw_data: str
    active: bool
    is_expired: bool
    expires_at: datetime | None = None
    scan_count: int
    max_scans: int
    last_scanned_at: datetime | None = None
    can_be_scanned: bool
    generated_by: str
    table_number: str | None = None
    table_name: str | None = None
    capacity: int | None = None
    location: str | None = None
    category: str | None = None
    content: dict[str, Any] = Field(default_factory=dict)
    assigned_guests: list[TableAssignmentRead] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TableQRCreate(BaseModel):
    table_number: str = Field(min_length=1, max_length=20)
    table_name: str | None = Field(default=None, max_length=100)
    capacity: int = Field(default=DEFAULT_TABLE_CAPACITY, ge=1, le=100)
    location: str | None = Field(default=None, max_length=200)
    category: str = Field(default="general", max_length=50)
    content: dict[str, Any] = Field(default_factory=dict)

    @field_validator("table_number", mode="before")
    @classmethod
    def _table_as_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


class TableAssignmentCreate(BaseModel):
    guest_id: uuid.UUID
    seats: int | None = Field(default=None, ge=1)
    notes: str | None = Field(default=None, max_length=500)
    assigned_by: str = Field(default="system", max_length=64)


class TableOccupancy(BaseModel):
    qr_code_id: uuid.UUID
    table_number: str | None = None
    table_name: str | None = None
    capacity: int
    guest_count: int
    seats_taken: int
    available_seats: int
    occupancy_rate: int
    is_full: bool
    assigned_guests: list[TableAssignmentRead]


class QRValidateRequest(BaseModel):
    qr_data: str = Field(min_length=1, max_length=2000)


class QRValidationResult(BaseModel):
    valid: bool
    error: str | None = None
    data: dict[str, Any] | None = None
    stored: bool = False
    qr_code_id: uuid.UUID | None = None
    can_be_scanned: bool | None = None


class QRBulkResult(BaseModel):
    event_id: uuid.UUID
    created: int
    skipped: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class TableQRStats(BaseModel):
    total: int = 0
    occupied: int = 0
    full: int = 0
    total_seats: int = 0
    occupied_seats: int = 0
    occupancy_rate: float = 0.0


class EventQRStats(BaseModel):
    event_id: uuid.UUID
    total: int
    by_type: dict[str, int]
    active: int
    expired: int
    scanned: int
    total_scans: int
    available_for_scan: int
    scan_rate: float
    active_rate: float
    tables: TableQRStats


class QRCleanupResult(BaseModel):
    total_expired: int
    deactivated: int
    deleted: int
