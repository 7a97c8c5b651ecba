"""Event management services."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from secura.core.config import get_settings
from secura.core.errors import LimitReachedError, NotFoundError, SecuraError
from secura.models import (
    DEFAULT_EVENT_SETTINGS,
    Event,
    EventType,
    Guest,
    GuestStatus,
    Scan,
)
from secura.schemas.event import (
    EventCreate,
    EventSettingsUpdate,
    EventStats,
    EventUpdate,
)

logger = logging.getLogger(__name__)

_COPY_SUFFIX = " (Copy)"
_NAME_MAX_LENGTH = 100


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise


async def check_organizer_limit(session: AsyncSession, *, organizer_id: str) -> None:
    """Raise when the organizer already owns the maximum number of events."""
    maximum = get_settings().max_events_per_organizer
    result = await session.execute(
        select(func.count())
        .select_from(Event)
        .where(Event.organizer_id == organizer_id)
    )
    if int(result.scalar_one()) >= maximum:
        raise LimitReachedError(f"Event limit reached ({maximum})")


async def create_event(session: AsyncSession, *, payload: EventCreate) -> Event:
    """Create an event, applying default settings."""
    if payload.organizer_id:
        await check_organizer_limit(session, organizer_id=payload.organizer_id)

    settings = dict(DEFAULT_EVENT_SETTINGS)
    if payload.settings is not None:
        settings.update(payload.settings.model_dump(exclude_none=True))

    event = Event(
        organizer_id=payload.organizer_id,
        name=payload.name,
        type=payload.type,
        date=payload.date,
        time=payload.time,
        location=payload.location,
        capacity=payload.capacity,
        description=payload.description,
        welcome_message=payload.welcome_message,
        active=payload.active,
        settings=settings,
    )
    session.add(event)
    await _commit(session)
    await session.refresh(event)
    logger.info("Event %s created (%s)", event.id, event.name)
    return event


async def get_event(session: AsyncSession, *, event_id: uuid.UUID) -> Event:
    event = await session.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event")
    return event


async def list_events(
    session: AsyncSession,
    *,
    organizer_id: str | None = None,
    event_type: EventType | None = None,
    active: bool | None = None,
    upcoming: bool = False,
    past: bool = False,
    query: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Event]:
    """Return events ordered by date, filtered by the given criteria."""
    if upcoming and past:
        raise ValueError("upcoming and past filters are mutually exclusive")

    today = datetime.now(UTC).date()
    stmt = select(Event)
    if organizer_id:
        stmt = stmt.where(Event.organizer_id == organizer_id)
    if event_type:
        stmt = stmt.where(Event.type == event_type)
    if active is not None:
        stmt = stmt.where(Event.active.is_(active))
    if upcoming:
        stmt = stmt.where(Event.date >= today)
    if past:
        stmt = stmt.where(Event.date < today)
    if query:
        pattern = f"%{query.strip()}%"
        stmt = stmt.where(
            or_(
                Event.name.ilike(pattern),
                Event.location.ilike(pattern),
                Event.description.ilike(pattern),
            )
        )
    stmt = (
        stmt.order_by(Event.date.desc() if past else Event.date.asc(), Event.name)
        .offset(offset)
        .limit(min(limit, 200))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_event(
    session: AsyncSession, *, event: Event, payload: EventUpdate
) -> Event:
    updates = payload.model_dump(exclude_unset=True)
    for required in ("name", "date", "location", "capacity"):
        if required in updates and updates[required] is None:
            raise ValueError(f"{required} cannot be empty")
    for field, value in updates.items():
        setattr(event, field, value)
    await _commit(session)
    await session.refresh(event)
    logger.info("Event %s updated (%s)", event.id, ", ".join(sorted(updates)))
    return event


async def update_settings(
    session: AsyncSession, *, event: Event, payload: EventSettingsUpdate
) -> Event:
    """Merge the provided switches into the event's settings."""
    merged = dict(DEFAULT_EVENT_SETTINGS)
    merged.update(event.settings or {})
    merged.update(payload.model_dump(exclude_none=True))
    event.settings = merged
    await _commit(session)
    await session.refresh(event)
    return event


async def set_active(session: AsyncSession, *, event: Event, active: bool) -> Event:
    if event.active == active:
        state = "active" if active else "inactive"
        raise SecuraError(f"Event is already {state}")
    event.active = active
    await _commit(session)
    await session.refresh(event)
    logger.info("Event %s %s", event.id, "activated" if active else "deactivated")
    return event


async def activate_event(session: AsyncSession, *, event: Event) -> Event:
    return await set_active(session, event=event, active=True)


async def deactivate_event(session: AsyncSession, *, event: Event) -> Event:
    return await set_active(session, event=event, active=False)


def _copy_name(name: str) -> str:
    return name[: _NAME_MAX_LENGTH - len(_COPY_SUFFIX)] + _COPY_SUFFIX


async def duplicate_event(
    session: AsyncSession,
    *,
    event: Event,
    name: str | None = None,
    new_date: date | None = None,
) -> Event:
    """Copy an event without its guests; statistics start from zero.

    The copy is dated one week from today unless ``new_date`` is given.
    """
    if event.organizer_id:
        await check_organizer_limit(session, organizer_id=event.organizer_id)
    copy = Event(
        organizer_id=event.organizer_id,
        name=name or _copy_name(event.name),
        type=event.type,
        date=new_date or (datetime.now(UTC).date() + timedelta(days=7)),
        time=event.time,
        location=event.location,
        capacity=event.capacity,
        description=event.description,
        welcome_message=event.welcome_message,
        active=event.active,
        settings=dict(event.settings or DEFAULT_EVENT_SETTINGS),
    )
    session.add(copy)
    await _commit(session)
    await session.refresh(copy)
    logger.info("Event %s duplicated as %s", event.id, copy.id)
    return copy


async def count_guests(session: AsyncSession, *, event_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(Guest).where(Guest.event_id == event_id)
    )
    return int(result.scalar_one())


async def delete_event(
    session: AsyncSession, *, event: Event, force: bool = False
) -> None:
    """Delete an event; refused while guests exist unless ``force`` is set."""
    guest_count = await count_guests(session, event_id=event.id)
    if guest_count and not force:
        raise SecuraError(
            f"Cannot delete event: {guest_count} guest(s) attached",
            code="EVENT_HAS_GUESTS",
        )
    event_id = event.id
    await session.delete(event)
    await _commit(session)
    logger.info("Event %s deleted (%s guest(s) removed)", event_id, guest_count)


async def refresh_statistics(session: AsyncSession, *, event_id: uuid.UUID) -> Event:
    """Recompute the stored counters from guests and scans."""
    event = await get_event(session, event_id=event_id)
    confirmed_clause = or_(
        Guest.status == GuestStatus.CONFIRMED, Guest.confirmed.is_(True)
    )
    guest_row = (
        await session.execute(
            select(
                func.count(Guest.id),
                func.count(Guest.id).filter(confirmed_clause),
                func.count(Guest.id).filter(Guest.scanned.is_(True)),
            ).where(Guest.event_id == event_id)
        )
    ).one()
    scan_row = (
        await session.execute(
            select(func.count(Scan.id), func.max(Scan.scanned_at)).where(
                Scan.event_id == event_id, Scan.success.is_(True)
            )
        )
    ).one()

    total, confirmed, scanned = (int(value or 0) for value in guest_row)
    event.total_guests = total
    event.confirmed_guests = confirmed
    event.scanned_guests = scanned
    event.total_scans = int(scan_row[0] or 0)
    event.last_scan_at = scan_row[1]
    event.scan_rate = round(scanned / total * 100) if total else 0
    await _commit(session)
    await session.refresh(event)
    return event


async def get_statistics(session: AsyncSession, *, event_id: uuid.UUID) -> EventStats:
    event = await refresh_statistics(session, event_id=event_id)
    return EventStats(
        total_guests=event.total_guests,
        confirmed_guests=event.confirmed_guests,
        scanned_guests=event.scanned_guests,
        total_scans=event.total_scans,
        scan_rate=event.scan_rate,
        last_scan_at=event.last_scan_at,
        available_spots=event.available_spots,
        is_full=event.is_full,
        capacity_rate=(
            round(event.confirmed_guests / event.capacity * 100)
            if event.capacity
            else 0
        ),
        confirmation_rate=(
            round(event.confirmed_guests / event.total_guests * 100)
            if event.total_guests
            else 0
        ),
        average_scans_per_guest=(
            round(event.total_scans / event.confirmed_guests, 2)
            if event.confirmed_guests
            else 0
        ),
        is_past=event.is_past,
        is_today=event.is_today,
        days_until=event.days_until,
    )
