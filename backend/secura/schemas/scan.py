"""Scan schemas."""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from secura.models.scan import ScanType


class ScanRead(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    guest_id: uuid.UUID | None = None
    scanner_id: str | None = None
    scanner_name: str | None = None
    location: str | None = None
    type: ScanType
    success: bool
    error_message: str | None = None
    error_code: str | None = None
    scanned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QRScanRequest(BaseModel):
    """Scan submitted by an entrance device.

    ``qr_code`` is either the guest's opaque token or the JSON text of a
    signed invitation code. ``event_id`` lets an unreadable code still be
    logged against the event being scanned.
    """

    qr_code: str = Field(min_length=1, max_length=2000)
    event_id: uuid.UUID | None = None
    scanner_id: str = Field(default="scanner", max_length=64)
    scanner_name: str = Field(default="Scanner", max_length=100)
    location: str | None = Field(default=None, max_length=200)


class ScanSummary(BaseModel):
    """Scan counters for one event."""

    event_id: uuid.UUID
    total: int
    successful: int
    failed: int
    unique_guests: int
    by_scanner: dict[str, int]
    last_scan_at: datetime | None = None
