"""Guest management, check-in and statistics services."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.config import get_settings
from secura.core.errors import (
    BatchTooLargeError,
    DuplicateGuestError,
    GuestStateError,
    LimitReachedError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from secura.models import (
    Event,
    Guest,
    GuestStatus,
    Invitation,
    QRCode,
    QRCodeType,
    Scan,
    ScanType,
)
from secura.schemas.guest import (
    NAME_REQUIRED_MESSAGE,
    GuestBulkOperationResult,
    GuestCreate,
    GuestStats,
    GuestTableAssignment,
    GuestUpdate,
)
from secura.security.redact import mask_email
from secura.services import csv_service, event_service

logger = logging.getLogger(__name__)

EXPORT_COLUMNS: tuple[str, ...] = (
    "ID",
    "Prénom",
    "Nom",
    "Email",
    "Téléphone",
    "Entreprise",
    "Places",
    "Statut",
    "Scanné",
    "Date Scan",
    "Table",
    "Catégorie",
    "Notes",
    "Créé le",
)
RECENT_SCANS_LIMIT = 10


def _now() -> datetime:
    return datetime.now(UTC)


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise


def ensure_named(first_name: str | None, last_name: str | None) -> None:
    """Reject guests that have neither a first nor a last name."""
    if not (first_name or "").strip() and not (last_name or "").strip():
        raise ValidationError("Invalid guest", [NAME_REQUIRED_MESSAGE])


async def check_event_guest_limit(
    session: AsyncSession, *, event_id: uuid.UUID
) -> None:
    """Raise when the event already holds the maximum number of guests."""
    maximum = get_settings().max_guests_per_event
    current = await event_service.count_guests(session, event_id=event_id)
    if current >= maximum:
        raise LimitReachedError(f"Event guest limit reached ({maximum})")


async def find_by_email(
    session: AsyncSession, *, event_id: uuid.UUID, email: str
) -> Guest | None:
    result = await session.execute(
        select(Guest).where(
            Guest.event_id == event_id, Guest.email == email.strip().lower()
        )
    )
    return result.scalars().first()


async def check_email_uniqueness(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    email: str,
    exclude_guest_id: uuid.UUID | None = None,
) -> None:
    existing = await find_by_email(session, event_id=event_id, email=email)
    if existing is not None and existing.id != exclude_guest_id:
        raise DuplicateGuestError(
            "A guest with this email already exists for this event"
        )


async def create_guest(
    session: AsyncSession,
    *,
    payload: GuestCreate,
    enforce_unique_email: bool | None = None,
    refresh_event_stats: bool = True,
) -> Guest:
    """Create a guest after applying the event's business rules.

    ``enforce_unique_email`` defaults to the inverse of
    ``ALLOW_DUPLICATE_GUEST_EMAILS``; the bulk import passes ``False``.
    """
    settings = get_settings()
    event = await session.get(Event, payload.event_id)
    if event is None:
        raise NotFoundError("Event")

    ensure_named(payload.first_name, payload.last_name)
    await check_event_guest_limit(session, event_id=payload.event_id)

    if enforce_unique_email is None:
        enforce_unique_email = not settings.allow_duplicate_guest_emails
    if enforce_unique_email and payload.email:
        await check_email_uniqueness(
            session, event_id=payload.event_id, email=payload.email
        )

    guest = Guest(
        event_id=payload.event_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        company=payload.company,
        notes=payload.notes,
        seats=payload.seats,
        status=payload.status,
        category=payload.metadata.category,
        table_number=payload.metadata.table_number,
        special_requirements=payload.metadata.special_requirements,
        invitation_sent=payload.metadata.invitation_sent,
        confirmed=payload.metadata.confirmed,
    )
    if payload.status == GuestStatus.CONFIRMED:
        guest.confirmed = True
    if guest.confirmed:
        guest.confirmed_at = _now()
    session.add(guest)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        detail = getattr(exc, "orig", None) or exc
        raise PersistenceError(f"Could not save guest: {detail}") from exc
    await session.refresh(guest)
    logger.info(
        "Guest %s created for event %s (%s)",
        guest.id,
        guest.event_id,
        mask_email(guest.email) or "no email",
    )
    if refresh_event_stats:
        await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


async def get_guest(session: AsyncSession, *, guest_id: uuid.UUID) -> Guest:
    guest = await session.get(Guest, guest_id)
    if guest is None:
        raise NotFoundError("Guest")
    return guest


async def get_guest_by_qr_code(session: AsyncSession, *, qr_code: str) -> Guest:
    result = await session.execute(select(Guest).where(Guest.qr_code == qr_code))
    guest = result.scalar_one_or_none()
    if guest is None:
        raise NotFoundError("Guest")
    return guest


async def list_guests(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    status: GuestStatus | None = None,
    scanned: bool | None = None,
    confirmed: bool | None = None,
    category: str | None = None,
    table_number: str | None = None,
    query: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Guest]:
    """Return an event's guests sorted by name, filtered by the given criteria."""
    stmt = select(Guest).where(Guest.event_id == event_id)
    if status:
        stmt = stmt.where(Guest.status == status)
    if scanned is not None:
        stmt = stmt.where(Guest.scanned.is_(scanned))
    if confirmed is not None:
        confirmed_clause = or_(
            Guest.status == GuestStatus.CONFIRMED, Guest.confirmed.is_(True)
        )
        stmt = stmt.where(confirmed_clause if confirmed else ~confirmed_clause)
    if category:
        stmt = stmt.where(Guest.category == category)
    if table_number:
        stmt = stmt.where(Guest.table_number == table_number)
    if query:
        pattern = f"%{query.strip()}%"
        stmt = stmt.where(
            or_(
                Guest.first_name.ilike(pattern),
                Guest.last_name.ilike(pattern),
                Guest.email.ilike(pattern),
                Guest.phone.ilike(pattern),
                Guest.company.ilike(pattern),
            )
        )
    stmt = (
        stmt.order_by(Guest.last_name, Guest.first_name, Guest.created_at)
        .offset(offset)
        .limit(min(limit, 1000))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_guest(
    session: AsyncSession, *, guest: Guest, payload: GuestUpdate
) -> Guest:
    updates = payload.model_dump(exclude_unset=True, exclude={"metadata"})
    for field in ("first_name", "last_name", "seats", "status"):
        if field in updates and updates[field] is None:
            del updates[field]
    for field in ("email", "phone"):
        if field in updates and updates[field] == "":
            updates[field] = None

    ensure_named(
        updates.get("first_name", guest.first_name),
        updates.get("last_name", guest.last_name),
    )

    new_email = updates.get("email")
    if (
        new_email
        and new_email != guest.email
        and not get_settings().allow_duplicate_guest_emails
    ):
        await check_email_uniqueness(
            session, event_id=guest.event_id, email=new_email, exclude_guest_id=guest.id
        )

    for field, value in updates.items():
        setattr(guest, field, value)
    if "status" in updates:
        guest.confirmed = updates["status"] == GuestStatus.CONFIRMED
    if payload.metadata is not None:
        for field, value in payload.metadata.model_dump(exclude_unset=True).items():
            if field == "category" and not value:
                continue
            setattr(guest, field, value)

    await _commit(session)
    await session.refresh(guest)
    await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


async def _release_table_seats(
    session: AsyncSession, guest_ids: Sequence[uuid.UUID]
) -> None:
    keys = {str(guest_id) for guest_id in guest_ids}
    event_ids = select(Guest.event_id).where(Guest.id.in_(guest_ids))
    tables = await session.execute(
        select(QRCode).where(
            QRCode.type == QRCodeType.TABLE, QRCode.event_id.in_(event_ids)
        )
    )
    for table in tables.scalars():
        remaining = [
            entry for entry in table.assigned_guests or [] if entry.get("guest_id") not in keys
        ]
        if len(remaining) != len(table.assigned_guests or []):
            table.assigned_guests = remaining


async def _delete_guest_rows(
    session: AsyncSession, guest_ids: Sequence[uuid.UUID]
) -> None:
    await _release_table_seats(session, guest_ids)
    await session.execute(delete(QRCode).where(QRCode.guest_id.in_(guest_ids)))
    await session.execute(delete(Scan).where(Scan.guest_id.in_(guest_ids)))
    await session.execute(delete(Invitation).where(Invitation.guest_id.in_(guest_ids)))
    await session.execute(delete(Guest).where(Guest.id.in_(guest_ids)))


async def delete_guest(session: AsyncSession, *, guest: Guest) -> None:
    """Delete a guest together with its scans and invitations."""
    guest_id, event_id = guest.id, guest.event_id
    await _delete_guest_rows(session, [guest_id])
    await _commit(session)
    logger.info("Guest %s deleted from event %s", guest_id, event_id)
    await event_service.refresh_statistics(session, event_id=event_id)


async def _record_scan(
    session: AsyncSession,
    *,
    guest: Guest,
    scanner_id: str,
    scanner_name: str,
    location: str | None,
    success: bool,
    error_message: str | None = None,
    error_code: str | None = None,
    scan_type: ScanType = ScanType.ENTRY,
) -> Scan:
    scan = Scan(
        id=uuid.uuid4(),
        event_id=guest.event_id,
        guest_id=guest.id,
        scanner_id=scanner_id,
        scanner_name=scanner_name,
        location=location,
        type=scan_type,
        success=success,
        error_message=error_message,
        error_code=error_code,
        scanned_at=_now(),
    )
    session.add(scan)
    return scan


async def scan_guest(
    session: AsyncSession,
    *,
    guest: Guest,
    scanner_id: str = "manual",
    scanner_name: str = "Manual check-in",
    location: str | None = None,
) -> Guest:
    """Check a guest in.

    Only confirmed guests that have not been scanned yet are accepted. A
    refused attempt is still recorded as a failed scan before raising.
    """
    if not guest.can_be_scanned:
        reason = (
            "Guest already scanned" if guest.scanned else "Guest is not confirmed"
        )
        await _record_scan(
            session,
            guest=guest,
            scanner_id=scanner_id,
            scanner_name=scanner_name,
            location=location,
            success=False,
            error_message=reason,
            error_code="GUEST_NOT_SCANNABLE",
        )
        await _commit(session)
        logger.warning("Scan refused for guest %s: %s", guest.id, reason)
        raise GuestStateError(reason, code="GUEST_NOT_SCANNABLE")

    scan = await _record_scan(
        session,
        guest=guest,
        scanner_id=scanner_id,
        scanner_name=scanner_name,
        location=location,
        success=True,
    )
    entry = {
        "timestamp": scan.scanned_at.isoformat(),
        "scanner_id": scanner_id,
        "scanner_name": scanner_name,
        "location": location or "",
        "scan_id": str(scan.id),
    }
    history_limit = get_settings().scan_history_limit
    guest.scanned = True
    guest.scanned_at = scan.scanned_at
    guest.scan_count = (guest.scan_count or 0) + 1
    guest.scan_history = [entry, *(guest.scan_history or [])][:history_limit]
    await _commit(session)
    await session.refresh(guest)
    logger.info("Guest %s scanned by %s", guest.id, scanner_id)
    await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


async def unscan_guest(session: AsyncSession, *, guest: Guest) -> Guest:
    """Undo a check-in; scan history and count are kept."""
    if not guest.scanned:
        raise GuestStateError("Guest has not been scanned")
    guest.scanned = False
    guest.scanned_at = None
    await _commit(session)
    await session.refresh(guest)
    logger.info("Guest %s check-in reverted", guest.id)
    await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


def _apply_confirmation(
    guest: Guest, *, method: str, confirmed_by: str | None, notes: str | None
) -> None:
    if guest.status == GuestStatus.CONFIRMED:
        raise GuestStateError("Guest already confirmed")
    now = _now()
    entry = {
        "timestamp": now.isoformat(),
        "action": "confirmed",
        "method": method,
        "confirmed_by": confirmed_by,
        "notes": notes or "",
    }
    guest.status = GuestStatus.CONFIRMED
    guest.confirmed = True
    guest.confirmed_at = now
    guest.cancelled_at = None
    guest.confirmation_history = [entry, *(guest.confirmation_history or [])]


async def confirm_guest(
    session: AsyncSession,
    *,
    guest: Guest,
    method: str = "manual",
    confirmed_by: str | None = None,
    notes: str | None = None,
) -> Guest:
    _apply_confirmation(guest, method=method, confirmed_by=confirmed_by, notes=notes)
    await _commit(session)
    await session.refresh(guest)
    logger.info("Guest %s confirmed (%s)", guest.id, method)
    await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


async def cancel_guest(
    session: AsyncSession, *, guest: Guest, reason: str | None = None
) -> Guest:
    if guest.status == GuestStatus.CANCELLED:
        raise GuestStateError("Guest already cancelled")
    guest.status = GuestStatus.CANCELLED
    guest.confirmed = False
    guest.cancelled_at = _now()
    entry = {
        "timestamp": guest.cancelled_at.isoformat(),
        "action": "cancelled",
        "method": "manual",
        "confirmed_by": None,
        "notes": reason or "",
    }
    guest.confirmation_history = [entry, *(guest.confirmation_history or [])]
    await _commit(session)
    await session.refresh(guest)
    logger.info("Guest %s cancelled", guest.id)
    await event_service.refresh_statistics(session, event_id=guest.event_id)
    return guest


async def _load_event_guests(
    session: AsyncSession, *, event_id: uuid.UUID, guest_ids: Sequence[uuid.UUID]
) -> dict[uuid.UUID, Guest]:
    result = await session.execute(
        select(Guest).where(Guest.event_id == event_id, Guest.id.in_(guest_ids))
    )
    return {guest.id: guest for guest in result.scalars().all()}


async def bulk_confirm(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    guest_ids: Sequence[uuid.UUID],
    method: str = "bulk",
    confirmed_by: str | None = None,
) -> GuestBulkOperationResult:
    """Confirm several guests; already confirmed or unknown ids are reported."""
    limit = get_settings().guest_bulk_import_limit
    if len(guest_ids) > limit:
        raise BatchTooLargeError(limit=limit, received=len(guest_ids), noun="guests")

    guests = await _load_event_guests(session, event_id=event_id, guest_ids=guest_ids)
    errors: list[dict[str, str]] = []
    succeeded = 0
    for guest_id in guest_ids:
        guest = guests.get(guest_id)
        if guest is None:
            errors.append({"guest_id": str(guest_id), "error": "Guest not found"})
            continue
        try:
            _apply_confirmation(
                guest, method=method, confirmed_by=confirmed_by, notes=None
            )
        except GuestStateError as exc:
            errors.append({"guest_id": str(guest_id), "error": str(exc)})
            continue
        succeeded += 1
    await _commit(session)
    logger.info("Bulk confirmed %s guest(s) for event %s", succeeded, event_id)
    await event_service.refresh_statistics(session, event_id=event_id)
    return GuestBulkOperationResult(
        processed=len(guest_ids),
        succeeded=succeeded,
        failed=len(errors),
        errors=errors,
    )


async def bulk_delete(
    session: AsyncSession, *, event_id: uuid.UUID, guest_ids: Sequence[uuid.UUID]
) -> GuestBulkOperationResult:
    limit = get_settings().guest_bulk_delete_limit
    if len(guest_ids) > limit:
        raise BatchTooLargeError(limit=limit, received=len(guest_ids), noun="guests")

    guests = await _load_event_guests(session, event_id=event_id, guest_ids=guest_ids)
    errors = [
        {"guest_id": str(guest_id), "error": "Guest not found"}
        for guest_id in guest_ids
        if guest_id not in guests
    ]
    if guests:
        await _delete_guest_rows(session, list(guests))
    await _commit(session)
    logger.info("Bulk deleted %s guest(s) from event %s", len(guests), event_id)
    await event_service.refresh_statistics(session, event_id=event_id)
    return GuestBulkOperationResult(
        processed=len(guest_ids),
        succeeded=len(guests),
        failed=len(errors),
        errors=errors,
    )


async def delete_all_by_event(
    session: AsyncSession, *, event_id: uuid.UUID, confirm: bool = False
) -> int:
    """Remove every guest of an event; requires an explicit confirmation."""
    if not confirm:
        raise ValidationError("Deleting all guests requires confirm=true")
    await event_service.get_event(session, event_id=event_id)
    guest_ids = list(
        (
            await session.execute(select(Guest.id).where(Guest.event_id == event_id))
        ).scalars()
    )
    if guest_ids:
        await _delete_guest_rows(session, guest_ids)
    await _commit(session)
    logger.warning("Deleted all %s guest(s) of event %s", len(guest_ids), event_id)
    await event_service.refresh_statistics(session, event_id=event_id)
    return len(guest_ids)


async def assign_table(
    session: AsyncSession, *, guest: Guest, table_number: str | None
) -> Guest:
    guest.table_number = table_number
    await _commit(session)
    await session.refresh(guest)
    return guest


async def bulk_assign_tables(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    assignments: Sequence[GuestTableAssignment],
) -> GuestBulkOperationResult:
    limit = get_settings().guest_bulk_import_limit
    if len(assignments) > limit:
        raise BatchTooLargeError(
            limit=limit, received=len(assignments), noun="assignments"
        )
    guests = await _load_event_guests(
        session,
        event_id=event_id,
        guest_ids=[assignment.guest_id for assignment in assignments],
    )
    errors: list[dict[str, str]] = []
    for assignment in assignments:
        guest = guests.get(assignment.guest_id)
        if guest is None:
            errors.append(
                {"guest_id": str(assignment.guest_id), "error": "Guest not found"}
            )
            continue
        guest.table_number = assignment.table_number
    await _commit(session)
    return GuestBulkOperationResult(
        processed=len(assignments),
        succeeded=len(assignments) - len(errors),
        failed=len(errors),
        errors=errors,
    )


async def get_guest_stats(session: AsyncSession, *, event_id: uuid.UUID) -> GuestStats:
    """Aggregate attendance figures for an event's guest list."""
    await event_service.get_event(session, event_id=event_id)
    guests = list(
        (await session.execute(select(Guest).where(Guest.event_id == event_id)))
        .scalars()
        .all()
    )
    total = len(guests)
    by_status = {status.value: 0 for status in GuestStatus}
    by_status.update(Counter(guest.status.value for guest in guests))
    scanned = sum(1 for guest in guests if guest.scanned)
    confirmed = [guest for guest in guests if guest.is_confirmed]
    categories = Counter(guest.category for guest in guests)
    tables = Counter(guest.table_number for guest in guests if guest.table_number)

    recent: list[dict[str, Any]] = []
    for guest in guests:
        for entry in guest.scan_history or []:
            recent.append(
                {
                    **entry,
                    "guest_id": str(guest.id),
                    "guest_name": guest.full_name,
                }
            )
    recent.sort(key=lambda item: item.get("timestamp", ""), reverse=True)

    total_scans = (
        await session.execute(
            select(func.count(Scan.id)).where(
                Scan.event_id == event_id, Scan.success.is_(True)
            )
        )
    ).scalar_one()

    return GuestStats(
        total=total,
        by_status=by_status,
        scanned=scanned,
        not_scanned=total - scanned,
        total_scans=int(total_scans or 0),
        scan_rate=round(scanned / total * 100) if total else 0,
        confirmed=len(confirmed),
        confirmation_rate=round(len(confirmed) / total * 100) if total else 0,
        total_seats=sum(guest.seats for guest in guests),
        confirmed_seats=sum(guest.seats for guest in confirmed),
        categories=dict(categories),
        tables=dict(tables),
        invitations_sent=sum(1 for guest in guests if guest.invitation_sent),
        recent_scans=recent[:RECENT_SCANS_LIMIT],
    )


def _export_row(guest: Guest) -> dict[str, Any]:
    return {
        "ID": str(guest.id),
        "Prénom": guest.first_name,
        "Nom": guest.last_name,
        "Email": guest.email or "",
        "Téléphone": guest.phone or "",
        "Entreprise": guest.company or "",
        "Places": guest.seats,
        "Statut": guest.status.value,
        "Scanné": "Oui" if guest.scanned else "Non",
        "Date Scan": guest.scanned_at.isoformat() if guest.scanned_at else "",
        "Table": guest.table_number or "",
        "Catégorie": guest.category,
        "Notes": guest.notes or "",
        "Créé le": guest.created_at.isoformat() if guest.created_at else "",
    }


async def export_guests_csv(session: AsyncSession, *, event_id: uuid.UUID) -> str:
    """Render an event's guest list as CSV with the French column headers."""
    await event_service.get_event(session, event_id=event_id)
    result = await session.execute(
        select(Guest)
        .where(Guest.event_id == event_id)
        .order_by(Guest.created_at, Guest.last_name, Guest.first_name)
    )
    guests = list(result.scalars().all())
    content = csv_service.generate_csv(
        [_export_row(guest) for guest in guests], columns=EXPORT_COLUMNS
    )
    logger.info("Exported %s guest(s) for event %s", len(guests), event_id)
    return content
