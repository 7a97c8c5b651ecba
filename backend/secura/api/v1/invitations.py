"""Invitation delivery and public RSVP API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.models import InvitationStatus
from secura.schemas.invitation import (
    BulkInvitationResult,
    InvitationPublicView,
    InvitationRead,
    InvitationResponseRequest,
    InvitationSendRequest,
)
from secura.services import guest_service, invitation_service

router = APIRouter()


@router.post(
    "/invitations",
    response_model=InvitationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send an invitation to a guest",
)
async def send_invitation(
    payload: InvitationSendRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> InvitationRead:
    try:
        guest = await guest_service.get_guest(session, guest_id=payload.guest_id)
        invitation = await invitation_service.send_invitation(session, guest=guest)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return InvitationRead.model_validate(invitation)


@router.post(
    "/events/{event_id}/invitations/send",
    response_model=BulkInvitationResult,
    summary="Invite every guest not invited yet",
)
async def send_bulk_invitations(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> BulkInvitationResult:
    try:
        return await invitation_service.send_bulk_invitations(
            session, event_id=event_id
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc


@router.get(
    "/events/{event_id}/invitations",
    response_model=list[InvitationRead],
    summary="List invitations of an event",
)
async def list_invitations(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    invitation_status: Annotated[
        InvitationStatus | None, Query(alias="status")
    ] = None,
) -> list[InvitationRead]:
    try:
        invitations = await invitation_service.list_invitations(
            session, event_id=event_id, status=invitation_status
        )
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return [InvitationRead.model_validate(item) for item in invitations]


@router.get(
    "/invitations/{token}",
    response_model=InvitationPublicView,
    summary="Open an invitation link",
)
async def open_invitation(
    token: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> InvitationPublicView:
    try:
        invitation, event = await invitation_service.open_invitation(
            session, token=token
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return InvitationPublicView(
        token=invitation.token,
        status=invitation.status,
        guest_name=invitation.guest_name,
        event_name=event.name,
        event_date=event.date,
        event_time=event.time,
        event_location=event.location,
        welcome_message=event.welcome_message,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/invitations/{token}/respond",
    response_model=InvitationRead,
    summary="Accept or decline an invitation",
)
async def respond_to_invitation(
    token: str,
    payload: InvitationResponseRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> InvitationRead:
    try:
        invitation = await invitation_service.respond(
            session,
            token=token,
            accept=payload.response == "accept",
            message=payload.message,
            plus_ones=payload.plus_ones,
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return InvitationRead.model_validate(invitation)
