"""Signed QR codes: generation, validation, check-in and table seating.

A QR payload is a compact JSON object. ``t`` names the kind of code
(``INV`` for a guest invitation, ``TBL`` for a table), ``e`` the event,
``g``/``n``/``s`` the guest id, name and seats, ``tbl`` the table number and
``d`` the issue timestamp. ``sig`` is the first 16 hex characters of an
HMAC-SHA256 over the other keys, serialized with sorted keys and no
whitespace. The exact serialization is what gets stored in
``QRCode.raw_data`` and encoded in the printed image.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.config import get_settings
from secura.core.errors import (
    BatchTooLargeError,
    LimitReachedError,
    NotFoundError,
    SecuraError,
)
from secura.models import Event, Guest, GuestStatus, QRCode, QRCodeType, Scan, ScanType
from secura.schemas.qr_code import (
    EventQRStats,
    QRBulkResult,
    QRCleanupResult,
    QRValidationResult,
    TableAssignmentCreate,
    TableOccupancy,
    TableQRCreate,
    TableQRStats,
)
from secura.services import event_service, guest_service

logger = logging.getLogger(__name__)

INVITATION_CODE = "INV"
TABLE_CODE = "TBL"
PAYLOAD_TYPES = {INVITATION_CODE: QRCodeType.INVITATION, TABLE_CODE: QRCodeType.TABLE}
SIGNATURE_LENGTH = 16

QR_INVALID = "QR_INVALID"
QR_NOT_SCANNABLE = "QR_NOT_SCANNABLE"


def _now() -> datetime:
    return datetime.now(UTC)


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise


def encode_payload(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sign_payload(data: Mapping[str, Any], *, secret: str | None = None) -> str:
    unsigned = {key: value for key, value in data.items() if key != "sig"}
    key = (secret or get_settings().qr_secret).encode("utf-8")
    digest = hmac.new(key, encode_payload(unsigned).encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()[:SIGNATURE_LENGTH]


def verify_signature(data: Mapping[str, Any], *, secret: str | None = None) -> bool:
    signature = data.get("sig")
    if not isinstance(signature, str):
        return False
    return hmac.compare_digest(signature, sign_payload(data, secret=secret))


def _signed(data: dict[str, Any]) -> dict[str, Any]:
    data["sig"] = sign_payload(data)
    return data


def build_invitation_payload(
    *,
    event_id: uuid.UUID,
    guest_id: uuid.UUID,
    guest_name: str,
    seats: int = 1,
    issued_at: datetime | None = None,
) -> dict[str, Any]:
    return _signed(
        {
            "t": INVITATION_CODE,
            "e": str(event_id),
            "g": str(guest_id),
            "n": guest_name,
            "s": seats,
            "d": (issued_at or _now()).isoformat(),
        }
    )


def build_table_payload(
    *,
    event_id: uuid.UUID,
    table_number: str,
    issued_at: datetime | None = None,
) -> dict[str, Any]:
    return _signed(
        {
            "t": TABLE_CODE,
            "e": str(event_id),
            "tbl": table_number,
            "d": (issued_at or _now()).isoformat(),
        }
    )


def parse_qr_data(raw: str | Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the payload object, or ``None`` when it is not one of ours."""
    if isinstance(raw, Mapping):
        data = dict(raw)
    else:
        try:
            data = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(data, dict) or data.get("t") not in PAYLOAD_TYPES:
        return None
    return data


def looks_like_payload(raw: str) -> bool:
    return raw.lstrip().startswith("{")


@dataclass(frozen=True)
class QRValidation:
    valid: bool
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


def validate_payload(
    raw: str | Mapping[str, Any], *, now: datetime | None = None
) -> QRValidation:
    """Check the format, required keys, signature and age of a payload."""
    data = parse_qr_data(raw)
    if data is None:
        return QRValidation(False, "Invalid QR code format")
    if data["t"] == INVITATION_CODE and not all(data.get(key) for key in ("e", "g", "n")):
        return QRValidation(False, "Missing fields for invitation QR code", data)
    if data["t"] == TABLE_CODE and not all(data.get(key) for key in ("e", "tbl")):
        return QRValidation(False, "Missing fields for table QR code", data)
    if not verify_signature(data):
        return QRValidation(False, "Invalid QR code signature", data)
    issued = data.get("d")
    if issued:
        try:
            issued_at = datetime.fromisoformat(str(issued))
        except ValueError:
            return QRValidation(False, "Invalid QR code timestamp", data)
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=UTC)
        max_age = timedelta(days=get_settings().qr_expire_days)
        if (now or _now()) - issued_at > max_age:
            return QRValidation(False, "QR code expired", data)
    return QRValidation(True, None, data)


def _as_uuid(value: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


async def check_event_qr_limit(session: AsyncSession, *, event_id: uuid.UUID) -> None:
    limit = get_settings().max_qr_codes_per_event
    count = await session.scalar(
        select(func.count()).select_from(QRCode).where(QRCode.event_id == event_id)
    )
    if int(count or 0) >= limit:
        raise LimitReachedError(
            f"QR code limit reached for this event ({limit})", code="QR_LIMIT_REACHED"
        )


async def get_qr_code(session: AsyncSession, *, qr_code_id: uuid.UUID) -> QRCode:
    qr = await session.get(QRCode, qr_code_id)
    if qr is None:
        raise NotFoundError("QR code")
    return qr


async def find_by_raw_data(session: AsyncSession, raw_data: str) -> QRCode | None:
    result = await session.execute(select(QRCode).where(QRCode.raw_data == raw_data))
    return result.scalar_one_or_none()


async def _find_invitation_qr(
    session: AsyncSession, *, event_id: uuid.UUID, guest_id: uuid.UUID
) -> QRCode | None:
    result = await session.execute(
        select(QRCode).where(
            QRCode.event_id == event_id,
            QRCode.guest_id == guest_id,
            QRCode.type == QRCodeType.INVITATION,
        )
    )
    return result.scalar_one_or_none()


async def _find_table_qr(
    session: AsyncSession, *, event_id: uuid.UUID, table_number: str
) -> QRCode | None:
    result = await session.execute(
        select(QRCode).where(
            QRCode.event_id == event_id,
            QRCode.table_number == table_number,
            QRCode.type == QRCodeType.TABLE,
        )
    )
    return result.scalar_one_or_none()


def _new_invitation_qr(guest: Guest, *, generated_by: str) -> QRCode:
    settings = get_settings()
    issued_at = _now()
    payload = build_invitation_payload(
        event_id=guest.event_id,
        guest_id=guest.id,
        guest_name=guest.full_name,
        seats=guest.seats,
        issued_at=issued_at,
    )
    return QRCode(
        event_id=guest.event_id,
        guest_id=guest.id,
        type=QRCodeType.INVITATION,
        payload=payload,
        raw_data=encode_payload(payload),
        expires_at=issued_at + timedelta(days=settings.qr_expire_days),
        max_scans=settings.qr_max_scans,
        generated_by=generated_by,
    )


async def generate_invitation_qr(
    session: AsyncSession,
    *,
    guest: Guest,
    regenerate: bool = False,
    generated_by: str = "system",
) -> QRCode:
    """Issue the signed invitation code of a guest.

    A guest holds at most one invitation code per event; ``regenerate``
    replaces it, which invalidates the previously printed code.
    """
    existing = await _find_invitation_qr(
        session, event_id=guest.event_id, guest_id=guest.id
    )
    if existing is not None:
        if not regenerate:
            raise SecuraError(
                "An invitation QR code already exists for this guest",
                code="QR_ALREADY_EXISTS",
            )
        await session.delete(existing)
        await session.flush()
    else:
        await check_event_qr_limit(session, event_id=guest.event_id)

    qr = _new_invitation_qr(guest, generated_by=generated_by)
    session.add(qr)
    await _commit(session)
    await session.refresh(qr)
    logger.info("Invitation QR %s issued for guest %s", qr.id, guest.id)
    return qr


async def bulk_generate_invitation_qr(
    session: AsyncSession, *, event_id: uuid.UUID, generated_by: str = "system"
) -> QRBulkResult:
    """Issue invitation codes for every active guest of an event without one."""
    await event_service.get_event(session, event_id=event_id)
    has_code = select(QRCode.guest_id).where(
        QRCode.event_id == event_id,
        QRCode.type == QRCodeType.INVITATION,
        QRCode.guest_id.is_not(None),
    )
    result = await session.execute(
        select(Guest)
        .where(Guest.event_id == event_id, Guest.id.not_in(has_code))
        .order_by(Guest.created_at)
    )
    guests = list(result.scalars().all())
    limit = get_settings().qr_bulk_generate_limit
    if len(guests) > limit:
        raise BatchTooLargeError(limit=limit, received=len(guests), noun="QR codes")

    created = skipped = failed = 0
    errors: list[str] = []
    for guest in guests:
        if guest.status == GuestStatus.CANCELLED:
            skipped += 1
            continue
        try:
            await generate_invitation_qr(session, guest=guest, generated_by=generated_by)
        except (SecuraError, IntegrityError) as exc:
            failed += 1
            errors.append(f"{guest.id}: {exc}")
            logger.warning("Invitation QR for guest %s failed: %s", guest.id, exc)
        else:
            created += 1
    logger.info(
        "Bulk QR generation for event %s: %s created, %s skipped, %s failed",
        event_id,
        created,
        skipped,
        failed,
    )
    return QRBulkResult(
        event_id=event_id, created=created, skipped=skipped, failed=failed, errors=errors
    )


async def generate_table_qr(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    payload: TableQRCreate,
    regenerate: bool = False,
    generated_by: str = "system",
) -> QRCode:
    """Issue the information code of a table; seated guests survive regeneration."""
    await event_service.get_event(session, event_id=event_id)
    settings = get_settings()
    existing = await _find_table_qr(
        session, event_id=event_id, table_number=payload.table_number
    )
    assigned: list[dict[str, Any]] = []
    if existing is not None:
        if not regenerate:
            raise SecuraError(
                "A QR code already exists for this table", code="QR_ALREADY_EXISTS"
            )
        assigned = list(existing.assigned_guests or [])
        await session.delete(existing)
        await session.flush()
    else:
        table_count = await session.scalar(
            select(func.count())
            .select_from(QRCode)
            .where(QRCode.event_id == event_id, QRCode.type == QRCodeType.TABLE)
        )
        if int(table_count or 0) >= settings.max_table_qr_codes:
            raise LimitReachedError(
                f"Table limit reached ({settings.max_table_qr_codes})",
                code="TABLE_LIMIT_REACHED",
            )
        await check_event_qr_limit(session, event_id=event_id)

    table_name = payload.table_name or f"Table {payload.table_number}"
    data = build_table_payload(event_id=event_id, table_number=payload.table_number)
    qr = QRCode(
        event_id=event_id,
        type=QRCodeType.TABLE,
        payload=data,
        raw_data=encode_payload(data),
        max_scans=settings.max_guests_per_event,
        generated_by=generated_by,
        table_number=payload.table_number,
        table_name=table_name,
        capacity=payload.capacity,
        location=payload.location,
        category=payload.category,
        content={"welcome_message": f"Welcome to {table_name}", **payload.content},
        assigned_guests=assigned,
    )
    session.add(qr)
    await _commit(session)
    await session.refresh(qr)
    logger.info("Table QR %s issued for table %s", qr.id, qr.table_number)
    return qr


async def list_qr_codes(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    qr_type: QRCodeType | None = None,
    active: bool | None = None,
) -> list[QRCode]:
    await event_service.get_event(session, event_id=event_id)
    stmt = select(QRCode).where(QRCode.event_id == event_id)
    if qr_type:
        stmt = stmt.where(QRCode.type == qr_type)
    if active is not None:
        stmt = stmt.where(QRCode.active.is_(active))
    result = await session.execute(stmt.order_by(QRCode.created_at))
    return list(result.scalars().all())


async def set_active(session: AsyncSession, *, qr: QRCode, active: bool) -> QRCode:
    if active and (qr.is_expired or qr.expiry_passed()):
        raise SecuraError("An expired QR code cannot be reactivated", code="QR_EXPIRED")
    qr.active = active
    await _commit(session)
    await session.refresh(qr)
    logger.info("QR %s %s", qr.id, "activated" if active else "deactivated")
    return qr


async def delete_qr_code(session: AsyncSession, *, qr: QRCode) -> None:
    qr_id = qr.id
    await session.delete(qr)
    await _commit(session)
    logger.info("QR %s deleted", qr_id)


async def validate_qr_data(
    session: AsyncSession, *, raw: str
) -> QRValidationResult:
    """Check a scanned payload without recording anything."""
    validation = validate_payload(raw)
    if not validation.valid:
        return QRValidationResult(
            valid=False, error=validation.error, data=validation.data or None
        )
    stored = await find_by_raw_data(session, encode_payload(validation.data))
    return QRValidationResult(
        valid=True,
        data=validation.data,
        stored=stored is not None,
        qr_code_id=stored.id if stored else None,
        can_be_scanned=stored.can_be_scanned if stored else None,
    )


async def _record_failed_scan(
    session: AsyncSession,
    *,
    event_id: uuid.UUID | None,
    guest_id: uuid.UUID | None,
    scanner_id: str,
    scanner_name: str,
    location: str | None,
    error_message: str,
    error_code: str,
) -> None:
    if event_id is None or await session.get(Event, event_id) is None:
        logger.warning("Unattributable scan rejected: %s", error_message)
        return
    if guest_id is not None and await session.get(Guest, guest_id) is None:
        guest_id = None
    session.add(
        Scan(
            event_id=event_id,
            guest_id=guest_id,
            scanner_id=scanner_id,
            scanner_name=scanner_name,
            location=location,
            type=ScanType.ENTRY,
            success=False,
            error_message=error_message,
            error_code=error_code,
            scanned_at=_now(),
        )
    )
    await _commit(session)
    logger.warning("Scan rejected for event %s: %s", event_id, error_message)


async def reject_scan(
    session: AsyncSession,
    *,
    event_id: uuid.UUID | None,
    guest_id: uuid.UUID | None = None,
    scanner_id: str,
    scanner_name: str,
    location: str | None,
    message: str,
    code: str = QR_INVALID,
) -> SecuraError:
    """Log a refused scan against its event and return the error to raise."""
    await _record_failed_scan(
        session,
        event_id=event_id,
        guest_id=guest_id,
        scanner_id=scanner_id,
        scanner_name=scanner_name,
        location=location,
        error_message=message,
        error_code=code,
    )
    return SecuraError(message, code=code)


def _mark_scanned(
    qr: QRCode, *, scanner_id: str, scanner_name: str, location: str | None
) -> None:
    scanned_at = _now()
    entry = {
        "timestamp": scanned_at.isoformat(),
        "scanner_id": scanner_id,
        "scanner_name": scanner_name,
        "location": location or "",
    }
    history_limit = get_settings().scan_history_limit
    qr.scan_count = (qr.scan_count or 0) + 1
    qr.last_scanned_at = scanned_at
    qr.scan_history = [entry, *(qr.scan_history or [])][:history_limit]


async def check_in_with_payload(
    session: AsyncSession,
    *,
    raw: str,
    scanner_id: str,
    scanner_name: str,
    location: str | None = None,
    event_id: uuid.UUID | None = None,
) -> Guest:
    """Check in the guest named by a signed invitation payload.

    Every refusal is logged as a failed scan of the payload's event (or of
    ``event_id`` when the payload is unreadable) before it is raised.
    """
    validation = validate_payload(raw)
    data = validation.data
    payload_event = _as_uuid(data.get("e")) or event_id
    payload_guest = _as_uuid(data.get("g"))
    scan_context = {
        "event_id": payload_event,
        "guest_id": payload_guest,
        "scanner_id": scanner_id,
        "scanner_name": scanner_name,
        "location": location,
    }
    if not validation.valid:
        raise await reject_scan(
            session, message=validation.error or "Invalid QR code", **scan_context
        )
    if data["t"] != INVITATION_CODE:
        raise await reject_scan(
            session,
            message="Table QR codes cannot be used for check-in",
            code=QR_NOT_SCANNABLE,
            **scan_context,
        )

    qr = await find_by_raw_data(session, encode_payload(data))
    if qr is None:
        raise await reject_scan(session, message="QR code is not registered", **scan_context)
    if qr.expiry_passed() and not qr.is_expired:
        qr.is_expired = True
        qr.active = False
        await _commit(session)
    if not qr.can_be_scanned:
        message = (
            f"QR code cannot be scanned (scans: {qr.scan_count}/{qr.max_scans}, "
            f"active: {qr.active}, expired: {qr.is_expired})"
        )
        raise await reject_scan(
            session, message=message, code=QR_NOT_SCANNABLE, **scan_context
        )

    guest = await guest_service.get_guest(session, guest_id=qr.guest_id)
    guest = await guest_service.scan_guest(
        session,
        guest=guest,
        scanner_id=scanner_id,
        scanner_name=scanner_name,
        location=location,
    )
    _mark_scanned(qr, scanner_id=scanner_id, scanner_name=scanner_name, location=location)
    await _commit(session)
    logger.info("Invitation QR %s used (%s/%s)", qr.id, qr.scan_count, qr.max_scans)
    return guest


def _require_table(qr: QRCode) -> None:
    if not qr.is_table:
        raise SecuraError("QR code is not a table code", code="NOT_TABLE_QR")


async def assign_guest_to_table(
    session: AsyncSession, *, qr: QRCode, payload: TableAssignmentCreate
) -> QRCode:
    """Seat a guest at a table, moving them off any other table of the event."""
    _require_table(qr)
    guest = await guest_service.get_guest(session, guest_id=payload.guest_id)
    if guest.event_id != qr.event_id:
        raise SecuraError("Guest belongs to another event", code="GUEST_EVENT_MISMATCH")
    guest_key = str(guest.id)
    if any(entry.get("guest_id") == guest_key for entry in qr.assigned_guests or []):
        raise SecuraError(
            "Guest is already seated at this table", code="GUEST_ALREADY_ASSIGNED"
        )
    seats = payload.seats or guest.seats or 1
    if qr.seats_taken + seats > (qr.capacity or 0):
        raise SecuraError(
            f"Table is full ({qr.available_seats} of {qr.capacity} seats left)",
            code="TABLE_FULL",
        )

    others = await session.execute(
        select(QRCode).where(
            QRCode.event_id == qr.event_id,
            QRCode.type == QRCodeType.TABLE,
            QRCode.id != qr.id,
        )
    )
    for other in others.scalars():
        remaining = [
            entry for entry in other.assigned_guests or [] if entry.get("guest_id") != guest_key
        ]
        if len(remaining) != len(other.assigned_guests or []):
            other.assigned_guests = remaining

    qr.assigned_guests = [
        *(qr.assigned_guests or []),
        {
            "guest_id": guest_key,
            "guest_name": guest.full_name,
            "seats": seats,
            "assigned_at": _now().isoformat(),
            "assigned_by": payload.assigned_by,
            "notes": payload.notes,
        },
    ]
    guest.table_number = qr.table_number
    await _commit(session)
    await session.refresh(qr)
    logger.info("Guest %s seated at table %s", guest.id, qr.table_number)
    return qr


async def remove_guest_from_table(
    session: AsyncSession, *, qr: QRCode, guest_id: uuid.UUID
) -> QRCode:
    _require_table(qr)
    guest_key = str(guest_id)
    remaining = [
        entry for entry in qr.assigned_guests or [] if entry.get("guest_id") != guest_key
    ]
    if len(remaining) == len(qr.assigned_guests or []):
        raise NotFoundError("Table assignment")
    qr.assigned_guests = remaining
    guest = await session.get(Guest, guest_id)
    if guest is not None and guest.table_number == qr.table_number:
        guest.table_number = None
    await _commit(session)
    await session.refresh(qr)
    logger.info("Guest %s removed from table %s", guest_id, qr.table_number)
    return qr


def get_table_occupancy(qr: QRCode) -> TableOccupancy:
    _require_table(qr)
    return TableOccupancy(
        qr_code_id=qr.id,
        table_number=qr.table_number,
        table_name=qr.table_name,
        capacity=qr.capacity or 0,
        guest_count=qr.guest_count,
        seats_taken=qr.seats_taken,
        available_seats=qr.available_seats,
        occupancy_rate=qr.occupancy_rate,
        is_full=qr.is_full,
        assigned_guests=list(qr.assigned_guests or []),
    )


async def get_event_qr_stats(session: AsyncSession, *, event_id: uuid.UUID) -> EventQRStats:
    codes = await list_qr_codes(session, event_id=event_id)
    by_type: dict[str, int] = {}
    tables = TableQRStats()
    active = expired = scanned = total_scans = available = 0
    for qr in codes:
        by_type[qr.type.value] = by_type.get(qr.type.value, 0) + 1
        active += qr.active
        expired += qr.is_expired or qr.expiry_passed()
        scanned += qr.scan_count > 0
        total_scans += qr.scan_count
        available += qr.can_be_scanned
        if qr.is_table:
            tables.total += 1
            tables.occupied += qr.guest_count > 0
            tables.full += qr.is_full
            tables.total_seats += qr.capacity or 0
            tables.occupied_seats += qr.seats_taken
    total = len(codes)
    if tables.total_seats:
        tables.occupancy_rate = round(tables.occupied_seats / tables.total_seats * 100, 2)
    return EventQRStats(
        event_id=event_id,
        total=total,
        by_type=by_type,
        active=active,
        expired=expired,
        scanned=scanned,
        total_scans=total_scans,
        available_for_scan=available,
        scan_rate=round(scanned / total * 100, 2) if total else 0.0,
        active_rate=round(active / total * 100, 2) if total else 0.0,
        tables=tables,
    )


async def cleanup_expired(
    session: AsyncSession, *, days_after_expiry: int = 7, now: datetime | None = None
) -> QRCleanupResult:
    """Deactivate codes expired for longer than ``days_after_expiry`` days.

    With a grace period above 30 days the stale codes are deleted instead.
    """
    cutoff = (now or _now()) - timedelta(days=days_after_expiry)
    result = await session.execute(
        select(QRCode).where(
            QRCode.active.is_(True),
            QRCode.expires_at.is_not(None),
            QRCode.expires_at < cutoff,
        )
    )
    stale = list(result.scalars().all())
    deactivated = deleted = 0
    if days_after_expiry > 30:
        for qr in stale:
            await session.delete(qr)
        deleted = len(stale)
    else:
        for qr in stale:
            qr.active = False
            qr.is_expired = True
        deactivated = len(stale)
    await _commit(session)
    logger.info("Expired QR cleanup: %s deactivated, %s deleted", deactivated, deleted)
    return QRCleanupResult(
        total_expired=len(stale), deactivated=deactivated, deleted=deleted
    )
