"""Scan history queries and QR check-in entrypoint."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.errors import NotFoundError
from secura.models import Guest, Scan
from secura.schemas.scan import QRScanRequest, ScanSummary
from secura.services import event_service, guest_service, qr_service

logger = logging.getLogger(__name__)


async def record_qr_scan(session: AsyncSession, *, payload: QRScanRequest) -> Guest:
    """Check in the guest holding ``payload.qr_code``.

    Signed invitation payloads go through :mod:`qr_service`; anything else is
    treated as a guest token. Unknown tokens are logged as failed scans of
    ``payload.event_id`` when one is given.
    """
    scanner = {
        "scanner_id": payload.scanner_id,
        "scanner_name": payload.scanner_name,
        "location": payload.location,
    }
    if qr_service.looks_like_payload(payload.qr_code):
        return await qr_service.check_in_with_payload(
            session, raw=payload.qr_code, event_id=payload.event_id, **scanner
        )
    try:
        guest = await guest_service.get_guest_by_qr_code(
            session, qr_code=payload.qr_code.strip()
        )
    except NotFoundError:
        raise await qr_service.reject_scan(
            session, event_id=payload.event_id, message="Unknown QR code", **scanner
        ) from None
    return await guest_service.scan_guest(session, guest=guest, **scanner)


async def list_scans(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    guest_id: uuid.UUID | None = None,
    success: bool | None = None,
    limit: int = 100,
) -> list[Scan]:
    """Return scans newest first."""
    await event_service.get_event(session, event_id=event_id)
    stmt = select(Scan).where(Scan.event_id == event_id)
    if guest_id:
        stmt = stmt.where(Scan.guest_id == guest_id)
    if success is not None:
        stmt = stmt.where(Scan.success.is_(success))
    stmt = stmt.order_by(Scan.scanned_at.desc()).limit(min(limit, 500))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_scan_summary(session: AsyncSession, *, event_id: uuid.UUID) -> ScanSummary:
    await event_service.get_event(session, event_id=event_id)
    total, successful, unique_guests, last_scan_at = (
        await session.execute(
            select(
                func.count(Scan.id),
                func.count(Scan.id).filter(Scan.success.is_(True)),
                func.count(func.distinct(Scan.guest_id)).filter(
                    Scan.success.is_(True)
                ),
                func.max(Scan.scanned_at),
            ).where(Scan.event_id == event_id)
        )
    ).one()
    by_scanner_rows = await session.execute(
        select(Scan.scanner_id, func.count(Scan.id))
        .where(Scan.event_id == event_id)
        .group_by(Scan.scanner_id)
    )
    by_scanner = {
        (scanner_id or "unknown"): int(count) for scanner_id, count in by_scanner_rows
    }
    total = int(total or 0)
    successful = int(successful or 0)
    return ScanSummary(
        event_id=event_id,
        total=total,
        successful=successful,
        failed=total - successful,
        unique_guests=int(unique_guests or 0),
        by_scanner=by_scanner,
        last_scan_at=last_scan_at,
    )
