"""Invitation creation, delivery and RSVP handling."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.config import get_settings
from secura.core.errors import GuestStateError, NotFoundError, SecuraError
from secura.models import Event, Guest, GuestStatus, Invitation, InvitationStatus
from secura.schemas.invitation import BulkInvitationResult, InvitationRead
from secura.security.redact import mask_email
from secura.services import email_service, event_service, guest_service

logger = logging.getLogger(__name__)

_ANSWERED = {InvitationStatus.ACCEPTED, InvitationStatus.DECLINED}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise


def build_invitation_url(token: str) -> str:
    base_url = get_settings().public_base_url.rstrip("/")
    return f"{base_url}/invitation/{token}"


def is_expired(invitation: Invitation, *, now: datetime | None = None) -> bool:
    if invitation.expires_at is None:
        return False
    return _as_utc(invitation.expires_at) <= (now or datetime.now(UTC))


async def create_invitation(session: AsyncSession, *, guest: Guest) -> Invitation:
    expire_days = get_settings().invitation_expire_days
    invitation = Invitation(
        event_id=guest.event_id,
        guest_id=guest.id,
        guest_email=guest.email,
        guest_name=guest.full_name,
        expires_at=datetime.now(UTC) + timedelta(days=expire_days),
    )
    session.add(invitation)
    await _commit(session)
    await session.refresh(invitation)
    return invitation


async def send_invitation(
    session: AsyncSession,
    *,
    guest: Guest,
    event: Event | None = None,
) -> Invitation:
    """Create and email an invitation for ``guest``.

    Transport failures are recorded on the invitation with status ``failed``
    instead of being raised.
    """
    if not guest.email:
        raise SecuraError("Guest has no email address", code="GUEST_WITHOUT_EMAIL")
    if event is None:
        event = await event_service.get_event(session, event_id=guest.event_id)

    invitation = await create_invitation(session, guest=guest)
    try:
        delivered = email_service.send_invitation_email(
            guest.email,
            guest_name=guest.full_name,
            event=event,
            invitation_url=build_invitation_url(invitation.token),
            expires_at=invitation.expires_at,
        )
    except Exception as exc:
        invitation.status = InvitationStatus.FAILED
        invitation.error = str(exc)
        logger.warning(
            "Invitation %s to %s failed: %s",
            invitation.id,
            mask_email(guest.email),
            exc,
        )
    else:
        invitation.status = InvitationStatus.SENT
        invitation.sent_at = datetime.now(UTC)
        guest.invitation_sent = True
        if not delivered:
            invitation.error = "delivery skipped (no SMTP configured)"
        logger.info("Invitation %s sent to guest %s", invitation.id, guest.id)
    await _commit(session)
    await session.refresh(invitation)
    return invitation


async def send_bulk_invitations(
    session: AsyncSession, *, event_id: uuid.UUID
) -> BulkInvitationResult:
    """Invite every guest with an email address who has no invitation yet."""
    event = await event_service.get_event(session, event_id=event_id)
    invited = select(Invitation.guest_id).where(Invitation.event_id == event_id)
    guests = list(
        (
            await session.execute(
                select(Guest)
                .where(Guest.event_id == event_id, Guest.id.not_in(invited))
                .order_by(Guest.created_at)
            )
        )
        .scalars()
        .all()
    )

    invitations: list[InvitationRead] = []
    sent = failed = skipped = 0
    for guest in guests:
        if not guest.email or guest.status == GuestStatus.CANCELLED:
            skipped += 1
            continue
        invitation = await send_invitation(session, guest=guest, event=event)
        if invitation.status == InvitationStatus.FAILED:
            failed += 1
        else:
            sent += 1
        invitations.append(InvitationRead.model_validate(invitation))
    logger.info(
        "Bulk invitations for event %s: %s sent, %s failed, %s skipped",
        event_id,
        sent,
        failed,
        skipped,
    )
    return BulkInvitationResult(
        event_id=event_id,
        sent=sent,
        failed=failed,
        skipped=skipped,
        invitations=invitations,
    )


async def _get_by_token(session: AsyncSession, token: str) -> Invitation:
    result = await session.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation")
    return invitation


async def _refuse_if_expired(session: AsyncSession, invitation: Invitation) -> None:
    if invitation.status == InvitationStatus.EXPIRED or is_expired(invitation):
        if invitation.status != InvitationStatus.EXPIRED:
            invitation.status = InvitationStatus.EXPIRED
            await _commit(session)
        raise SecuraError("Invitation has expired", code="INVITATION_EXPIRED")


async def open_invitation(
    session: AsyncSession, *, token: str
) -> tuple[Invitation, Event]:
    """Resolve an invitation link and record that it was opened."""
    invitation = await _get_by_token(session, token)
    await _refuse_if_expired(session, invitation)

    now = datetime.now(UTC)
    if invitation.opened_at is None:
        invitation.opened_at = now
    invitation.open_count = (invitation.open_count or 0) + 1
    if invitation.status in {InvitationStatus.PENDING, InvitationStatus.SENT}:
        invitation.status = InvitationStatus.OPENED
    await _commit(session)
    await session.refresh(invitation)
    event = await event_service.get_event(session, event_id=invitation.event_id)
    return invitation, event


async def respond(
    session: AsyncSession,
    *,
    token: str,
    accept: bool,
    message: str | None = None,
    plus_ones: int = 0,
) -> Invitation:
    """Record the guest's answer; accepting confirms the guest, declining cancels."""
    invitation = await _get_by_token(session, token)
    await _refuse_if_expired(session, invitation)
    if invitation.status in _ANSWERED:
        raise GuestStateError("Invitation already answered")

    guest = await guest_service.get_guest(session, guest_id=invitation.guest_id)
    invitation.status = InvitationStatus.ACCEPTED if accept else InvitationStatus.DECLINED
    invitation.responded_at = datetime.now(UTC)
    invitation.response_message = message
    invitation.plus_ones = plus_ones if accept else 0

    if accept and guest.status != GuestStatus.CONFIRMED:
        await guest_service.confirm_guest(
            session, guest=guest, method="invitation", notes=message
        )
        event = await event_service.get_event(session, event_id=guest.event_id)
        if guest.email:
            email_service.send_confirmation_email(
                guest.email, guest_name=guest.full_name, event=event, qr_code=guest.qr_code
            )
    elif not accept and guest.status != GuestStatus.CANCELLED:
        await guest_service.cancel_guest(session, guest=guest, reason=message)
    else:
        await _commit(session)

    await session.refresh(invitation)
    logger.info(
        "Invitation %s %s", invitation.id, "accepted" if accept else "declined"
    )
    return invitation


async def list_invitations(
    session: AsyncSession,
    *,
    event_id: uuid.UUID,
    status: InvitationStatus | None = None,
) -> list[Invitation]:
    await event_service.get_event(session, event_id=event_id)
    stmt = select(Invitation).where(Invitation.event_id == event_id)
    if status:
        stmt = stmt.where(Invitation.status == status)
    result = await session.execute(stmt.order_by(Invitation.created_at.desc()))
    return list(result.scalars().all())
