"""ORM models package export."""

from secura.models.event import DEFAULT_EVENT_SETTINGS, Event, EventStatus, EventType
from secura.models.guest import DEFAULT_GUEST_CATEGORY, Guest, GuestStatus
from secura.models.invitation import Invitation, InvitationStatus
from secura.models.message import Message, MessageStatus, MessageType
from secura.models.qr_code import DEFAULT_TABLE_CAPACITY, QRCode, QRCodeType
from secura.models.scan import Scan, ScanType

__all__ = [
    "DEFAULT_EVENT_SETTINGS",
    "DEFAULT_GUEST_CATEGORY",
    "DEFAULT_TABLE_CAPACITY",
    "Event",
    "EventStatus",
    "EventType",
    "Guest",
    "GuestStatus",
    "Invitation",
    "InvitationStatus",
    "Message",
    "MessageStatus",
    "MessageType",
    "QRCode",
    "QRCodeType",
    "Scan",
    "ScanType",
]
