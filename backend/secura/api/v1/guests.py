"""Guest management, bulk import and check-in API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.models import GuestStatus
from secura.schemas.guest import (
    GuestAssignTableRequest,
    GuestBulkConfirmRequest,
    GuestBulkDeleteRequest,
    GuestBulkOperationResult,
    GuestBulkTablesRequest,
    GuestCancelRequest,
    GuestConfirmRequest,
    GuestCreate,
    GuestRead,
    GuestScanRequest,
    GuestStats,
    GuestUpdate,
)
from secura.schemas.guest_import import (
    GuestImportRequest,
    GuestImportResultRead,
    ImportRowErrorRead,
)
from secura.services import guest_import_service, guest_service, invitation_service
from secura.services.guest_import_service import ImportOptions, ImportResult

router = APIRouter()

_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _import_response(result: ImportResult) -> GuestImportResultRead:
    return GuestImportResultRead(
        event_id=result.event_id,
        total=result.total,
        created=result.created,
        failed=result.failed,
        errors=[
            ImportRowErrorRead(
                index=error.index,
                row=error.row,
                reason=error.reason,
                errors=list(error.errors),
            )
            for error in result.errors
        ],
        guests=result.guests,
    )


@router.get(
    "/events/{event_id}/guests",
    response_model=list[GuestRead],
    summary="List guests of an event",
)
async def list_guests(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    guest_status: Annotated[GuestStatus | None, Query(alias="status")] = None,
    scanned: bool | None = None,
    confirmed: bool | None = None,
    category: str | None = None,
    table: str | None = None,
    q: str | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[GuestRead]:
    try:
        guests = await guest_service.list_guests(
            session,
            event_id=event_id,
            status=guest_status,
            scanned=scanned,
            confirmed=confirmed,
            category=category,
            table_number=table,
            query=q,
            limit=limit,
            offset=skip,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return [GuestRead.model_validate(guest) for guest in guests]


@router.post(
    "/guests",
    response_model=GuestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a guest",
)
async def create_guest(
    payload: GuestCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    send_invitation: bool = False,
) -> GuestRead:
    """Add a guest; ``send_invitation=true`` also emails an invitation link."""
    try:
        guest = await guest_service.create_guest(session, payload=payload)
        if send_invitation and guest.email:
            await invitation_service.send_invitation(session, guest=guest)
            await session.refresh(guest)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.post(
    "/events/{event_id}/guests/import",
    response_model=GuestImportResultRead,
    summary="Import guest rows",
)
async def import_guests(
    event_id: uuid.UUID,
    payload: GuestImportRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestImportResultRead:
    """Create guests from raw rows; per-row failures are reported, not raised."""
    try:
        result = await guest_import_service.import_batch(
            session,
            payload.rows,
            event_id,
            ImportOptions(send_invitations=payload.send_invitations),
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return _import_response(result)


@router.post(
    "/events/{event_id}/guests/import/csv",
    response_model=GuestImportResultRead,
    summary="Import guests from a CSV file",
)
async def import_guests_csv(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    file: UploadFile = File(...),
    send_invitations: bool = False,
) -> GuestImportResultRead:
    content = await file.read(_MAX_UPLOAD_BYTES + 1)
    if len(content) > _MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="CSV file exceeds 5 MB",
        )
    try:
        result = await guest_import_service.import_guests_from_csv(
            session,
            content,
            event_id,
            ImportOptions(send_invitations=send_invitations),
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return _import_response(result)


@router.get("/events/{event_id}/guests/export", summary="Export guests as CSV")
async def export_guests(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> StreamingResponse:
    try:
        content = await guest_service.export_guests_csv(session, event_id=event_id)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="guests-{event_id}.csv"'
        },
    )


@router.get(
    "/events/{event_id}/guests/stats",
    response_model=GuestStats,
    summary="Guest statistics",
)
async def guest_stats(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestStats:
    try:
        return await guest_service.get_guest_stats(session, event_id=event_id)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/events/{event_id}/guests/bulk-confirm",
    response_model=GuestBulkOperationResult,
    summary="Confirm several guests",
)
async def bulk_confirm(
    event_id: uuid.UUID,
    payload: GuestBulkConfirmRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestBulkOperationResult:
    try:
        return await guest_service.bulk_confirm(
            session,
            event_id=event_id,
            guest_ids=payload.guest_ids,
            method=payload.method,
            confirmed_by=payload.confirmed_by,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/events/{event_id}/guests/bulk-delete",
    response_model=GuestBulkOperationResult,
    summary="Delete several guests",
)
async def bulk_delete(
    event_id: uuid.UUID,
    payload: GuestBulkDeleteRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestBulkOperationResult:
    try:
        return await guest_service.bulk_delete(
            session, event_id=event_id, guest_ids=payload.guest_ids
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/events/{event_id}/guests/tables",
    response_model=GuestBulkOperationResult,
    summary="Assign tables to several guests",
)
async def bulk_assign_tables(
    event_id: uuid.UUID,
    payload: GuestBulkTablesRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestBulkOperationResult:
    try:
        return await guest_service.bulk_assign_tables(
            session, event_id=event_id, assignments=payload.assignments
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.delete("/events/{event_id}/guests", summary="Delete every guest of an event")
async def delete_all_guests(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    confirm: bool = False,
) -> dict[str, int]:
    try:
        deleted = await guest_service.delete_all_by_event(
            session, event_id=event_id, confirm=confirm
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return {"deleted": deleted}


@router.get("/guests/{guest_id}", response_model=GuestRead, summary="Get guest")
async def get_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.patch("/guests/{guest_id}", response_model=GuestRead, summary="Update guest")
async def update_guest(
    guest_id: uuid.UUID,
    payload: GuestUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.update_guest(session, guest=guest, payload=payload)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.delete(
    "/guests/{guest_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete guest"
)
async def delete_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> None:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        await guest_service.delete_guest(session, guest=guest)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.post("/guests/{guest_id}/scan", response_model=GuestRead, summary="Check in guest")
async def scan_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    payload: GuestScanRequest | None = None,
) -> GuestRead:
    payload = payload or GuestScanRequest()
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.scan_guest(
            session,
            guest=guest,
            scanner_id=payload.scanner_id,
            scanner_name=payload.scanner_name,
            location=payload.location,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.post("/guests/{guest_id}/unscan", response_model=GuestRead, summary="Undo check-in")
async def unscan_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.unscan_guest(session, guest=guest)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.post("/guests/{guest_id}/confirm", response_model=GuestRead, summary="Confirm guest")
async def confirm_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    payload: GuestConfirmRequest | None = None,
) -> GuestRead:
    payload = payload or GuestConfirmRequest()
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.confirm_guest(
            session,
            guest=guest,
            method=payload.method,
            confirmed_by=payload.confirmed_by,
            notes=payload.notes,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.post("/guests/{guest_id}/cancel", response_model=GuestRead, summary="Cancel guest")
async def cancel_guest(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    payload: GuestCancelRequest | None = None,
) -> GuestRead:
    payload = payload or GuestCancelRequest()
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.cancel_guest(
            session, guest=guest, reason=payload.reason
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)


@router.put("/guests/{guest_id}/table", response_model=GuestRead, summary="Assign table")
async def assign_table(
    guest_id: uuid.UUID,
    payload: GuestAssignTableRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GuestRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        guest = await guest_service.assign_table(
            session, guest=guest, table_number=payload.table_number
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return GuestRead.model_validate(guest)
