"""QR check-in and scan history API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.schemas.guest import GuestRead
from secura.schemas.scan import QRScanRequest, ScanRead, ScanSummary
from secura.services import scan_service

router = APIRouter()


@router.post("/scans", response_model=GuestRead, summary="Check in by QR code")
async def scan_qr_code(
    payload: QRScanRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestRead:
    """Resolve a QR code and check its guest in.

    Refused scans are still recorded in the event's scan history.
    """
    try:
        guest = await scan_service.record_qr_scan(session, payload=payload)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.get(
    "/events/{event_id}/scans",
    response_model=list[ScanRead],
    summary="Scan history of an event",
)
async def list_scans(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    guest_id: uuid.UUID | None = None,
    success: bool | None = None,
    limit: int = 100,
) -> list[ScanRead]:
    try:
        scans = await scan_service.list_scans(
            session, event_id=event_id, guest_id=guest_id, success=success, limit=limit
        )
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return [ScanRead.model_validate(scan) for scan in scans]


@router.get(
    "/events/{event_id}/scans/summary",
    response_model=ScanSummary,
    summary="Scan totals of an event",
)
async def scan_summary(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> ScanSummary:
    try:
        return await scan_service.get_scan_summary(session, event_id=event_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc
