"""Schema exports."""

from secura.schemas.event import (
    EventCreate,
    EventDuplicateRequest,
    EventRead,
    EventSettings,
    EventSettingsUpdate,
    EventStats,
    EventUpdate,
)
from secura.schemas.guest import (
    GuestCreate,
    GuestMetadata,
    GuestRead,
    GuestStats,
    GuestUpdate,
)
from secura.schemas.guest_import import (
    GuestImportCandidate,
    GuestImportRequest,
    GuestImportResultRead,
)
from secura.schemas.invitation import InvitationRead, InvitationResponseRequest
from secura.schemas.message import MessageCreate, MessageRead
from secura.schemas.qr_code import (
    QRCodeRead,
    TableAssignmentCreate,
    TableOccupancy,
    TableQRCreate,
)
from secura.schemas.scan import ScanRead, ScanSummary

__all__ = [
    "EventCreate",
    "EventDuplicateRequest",
    "EventRead",
    "EventSettings",
    "EventSettingsUpdate",
    "EventStats",
    "EventUpdate",
    "GuestCreate",
    "GuestImportCandidate",
    "GuestImportRequest",
    "GuestImportResultRead",
    "GuestMetadata",
    "GuestRead",
    "GuestStats",
    "GuestUpdate",
    "InvitationRead",
    "InvitationResponseRequest",
    "MessageCreate",
    "MessageRead",
    "QRCodeRead",
    "ScanRead",
    "ScanSummary",
    "TableAssignmentCreate",
    "TableOccupancy",
    "TableQRCreate",
]
