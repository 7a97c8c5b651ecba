"""Invitation and table QR code API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.models import QRCodeType
from secura.schemas.qr_code import (
    EventQRStats,
    QRBulkResult,
    QRCleanupResult,
    QRCodeRead,
    QRValidateRequest,
    QRValidationResult,
    TableAssignmentCreate,
    TableOccupancy,
    TableQRCreate,
)
from secura.services import guest_service, qr_service

router = APIRouter()


@router.post(
    "/guests/{guest_id}/qr-code",
    response_model=QRCodeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a guest's invitation QR code",
)
async def generate_invitation_qr(
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    regenerate: bool = False,
) -> QRCodeRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=guest_id)
        qr = await qr_service.generate_invitation_qr(
            session, guest=guest, regenerate=regenerate
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.post(
    "/events/{event_id}/qr-codes/invitations",
    response_model=QRBulkResult,
    summary="Issue invitation QR codes for every guest without one",
)
async def bulk_generate_invitation_qr(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRBulkResult:
    try:
        return await qr_service.bulk_generate_invitation_qr(session, event_id=event_id)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/events/{event_id}/qr-codes/tables",
    response_model=QRCodeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a table QR code",
)
async def generate_table_qr(
    event_id: uuid.UUID,
    payload: TableQRCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    regenerate: bool = False,
) -> QRCodeRead:
    try:
        qr = await qr_service.generate_table_qr(
            session, event_id=event_id, payload=payload, regenerate=regenerate
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.get(
    "/events/{event_id}/qr-codes",
    response_model=list[QRCodeRead],
    summary="List QR codes of an event",
)
async def list_qr_codes(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    qr_type: Annotated[QRCodeType | None, Query(alias="type")] = None,
    active: bool | None = None,
) -> list[QRCodeRead]:
    try:
        codes = await qr_service.list_qr_codes(
            session, event_id=event_id, qr_type=qr_type, active=active
        )
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return [QRCodeRead.model_validate(qr) for qr in codes]


@router.get(
    "/events/{event_id}/qr-codes/stats",
    response_model=EventQRStats,
    summary="QR code totals of an event",
)
async def event_qr_stats(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventQRStats:
    try:
        return await qr_service.get_event_qr_stats(session, event_id=event_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc


@router.post(
    "/qr-codes/validate",
    response_model=QRValidationResult,
    summary="Check a scanned payload without checking anyone in",
)
async def validate_qr_code(
    payload: QRValidateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRValidationResult:
    return await qr_service.validate_qr_data(session, raw=payload.qr_data)


@router.post(
    "/qr-codes/cleanup",
    response_model=QRCleanupResult,
    summary="Deactivate codes past their expiry",
)
async def cleanup_expired_qr_codes(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    days_after_expiry: int = Query(default=7, ge=0),
) -> QRCleanupResult:
    return await qr_service.cleanup_expired(session, days_after_expiry=days_after_expiry)


@router.get("/qr-codes/{qr_code_id}", response_model=QRCodeRead, summary="Get a QR code")
async def get_qr_code(
    qr_code_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRCodeRead:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.post(
    "/qr-codes/{qr_code_id}/activate", response_model=QRCodeRead, summary="Activate a QR code"
)
async def activate_qr_code(
    qr_code_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRCodeRead:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        qr = await qr_service.set_active(session, qr=qr, active=True)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.post(
    "/qr-codes/{qr_code_id}/deactivate",
    response_model=QRCodeRead,
    summary="Deactivate a QR code",
)
async def deactivate_qr_code(
    qr_code_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRCodeRead:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        qr = await qr_service.set_active(session, qr=qr, active=False)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.delete(
    "/qr-codes/{qr_code_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a QR code",
)
async def delete_qr_code(
    qr_code_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> Response:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        await qr_service.delete_qr_code(session, qr=qr)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/qr-codes/{qr_code_id}/guests",
    response_model=QRCodeRead,
    summary="Seat a guest at a table",
)
async def assign_guest_to_table(
    qr_code_id: uuid.UUID,
    payload: TableAssignmentCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRCodeRead:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        qr = await qr_service.assign_guest_to_table(session, qr=qr, payload=payload)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.delete(
    "/qr-codes/{qr_code_id}/guests/{guest_id}",
    response_model=QRCodeRead,
    summary="Remove a guest from a table",
)
async def remove_guest_from_table(
    qr_code_id: uuid.UUID,
    guest_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QRCodeRead:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        qr = await qr_service.remove_guest_from_table(session, qr=qr, guest_id=guest_id)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return QRCodeRead.model_validate(qr)


@router.get(
    "/qr-codes/{qr_code_id}/occupancy",
    response_model=TableOccupancy,
    summary="Seating of a table",
)
async def table_occupancy(
    qr_code_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> TableOccupancy:
    try:
        qr = await qr_service.get_qr_code(session, qr_code_id=qr_code_id)
        return qr_service.get_table_occupancy(qr)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
