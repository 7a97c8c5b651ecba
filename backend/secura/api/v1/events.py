"""Event management API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from secura.api import deps
from secura.models import EventType
from secura.schemas.event import (
    EventCreate,
    EventDuplicateRequest,
    EventRead,
    EventSettingsUpdate,
    EventStats,
    EventUpdate,
)
from secura.services import event_service

router = APIRouter()


@router.get("", response_model=list[EventRead], summary="List events")
async def list_events(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    organizer_id: str | None = None,
    event_type: Annotated[EventType | None, Query(alias="type")] = None,
    active: bool | None = None,
    upcoming: bool = False,
    past: bool = False,
    q: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[EventRead]:
    try:
        events = await event_service.list_events(
            session,
            organizer_id=organizer_id,
            event_type=event_type,
            active=active,
            upcoming=upcoming,
            past=past,
            query=q,
            limit=limit,
            offset=skip,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return [EventRead.model_validate(event) for event in events]


@router.post(
    "",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
)
async def create_event(
    payload: EventCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.create_event(session, payload=payload)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.get("/{event_id}", response_model=EventRead, summary="Get event")
async def get_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.get_event(session, event_id=event_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.patch("/{event_id}", response_model=EventRead, summary="Update event")
async def update_event(
    event_id: uuid.UUID,
    payload: EventUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.get_event(session, event_id=event_id)
        event = await event_service.update_event(session, event=event, payload=payload)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.patch(
    "/{event_id}/settings", response_model=EventRead, summary="Update event settings"
)
async def update_event_settings(
    event_id: uuid.UUID,
    payload: EventSettingsUpdate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.get_event(session, event_id=event_id)
        event = await event_service.update_settings(
            session, event=event, payload=payload
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.post("/{event_id}/activate", response_model=EventRead, summary="Activate event")
async def activate_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.get_event(session, event_id=event_id)
        event = await event_service.activate_event(session, event=event)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.post(
    "/{event_id}/deactivate", response_model=EventRead, summary="Deactivate event"
)
async def deactivate_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventRead:
    try:
        event = await event_service.get_event(session, event_id=event_id)
        event = await event_service.deactivate_event(session, event=event)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(event)


@router.post(
    "/{event_id}/duplicate",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate event",
)
async def duplicate_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    payload: EventDuplicateRequest | None = None,
) -> EventRead:
    """Copy an event's details and settings, without its guests."""
    payload = payload or EventDuplicateRequest()
    try:
        event = await event_service.get_event(session, event_id=event_id)
        copy = await event_service.duplicate_event(
            session, event=event, name=payload.name, new_date=payload.date
        )
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
    return EventRead.model_validate(copy)


@router.get("/{event_id}/stats", response_model=EventStats, summary="Event statistics")
async def get_event_stats(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> EventStats:
    try:
        return await event_service.get_statistics(session, event_id=event_id)
    except LookupError as exc:
        raise deps.http_error(exc) from exc


@router.delete(
    "/{event_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete event"
)
async def delete_event(
    event_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    force: bool = False,
) -> None:
    """Delete an event; pass ``force=true`` to remove its guests as well."""
    try:
        event = await event_service.get_event(session, event_id=event_id)
        await event_service.delete_event(session, event=event, force=force)
    except deps.SERVICE_ERRORS as exc:
        raise deps.http_error(exc) from exc
