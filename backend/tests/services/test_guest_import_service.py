"""Bulk guest import against a real database session."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from secura.core.config import get_settings
from secura.core.errors import (
    BatchTooLargeError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from secura.db.session import get_sessionmaker
from secura.models import Event, Guest, GuestStatus
from secura.schemas.guest import NAME_REQUIRED_MESSAGE, GuestCreate
from secura.services import guest_import_service, guest_service
from secura.services.guest_import_service import DUPLICATE_IN_BATCH

pytestmark = pytest.mark.asyncio


async def _guest_count(db_url: str, event_id: uuid.UUID) -> int:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await session.execute(
            select(func.count()).select_from(Guest).where(Guest.event_id == event_id)
        )
        return int(result.scalar_one())


async def test_duplicate_and_nameless_rows_are_reported(
    reset_database, db_url: str, make_event
) -> None:
    event = await make_event()
    rows = [
        {"firstName": "Jean", "lastName": "Dupont", "email": "j@x.com"},
        {"firstName": "Jean", "lastName": "Dupont", "email": "j@x.com"},
        {"firstName": "", "lastName": "", "email": "a@x.com"},
    ]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(session, rows, event.id)

    assert result.created == 1
    assert result.failed == 2
    assert result.created + result.failed == len(rows)
    assert [error.index for error in result.errors] == [1, 2]
    assert result.errors[0].reason == DUPLICATE_IN_BATCH
    assert result.errors[0].row == rows[1]
    assert NAME_REQUIRED_MESSAGE in result.errors[1].reason
    assert result.guests[0].email == "j@x.com"
    assert result.guests[0].event_id == event.id
    assert await _guest_count(db_url, event.id) == 1


async def test_rows_keep_input_order_and_fields(reset_database, db_url: str, make_event) -> None:
    event = await make_event()
    rows = [
        {"Prénom": "Claire", "Nom": "Moreau", "Places": "2", "catégorie": "vip"},
        {"firstName": "Luc", "phone": "abc"},
        {"firstName": "Marc", "lastName": "Petit", "table": "4", "status": "confirmed"},
    ]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(session, rows, event.id)

    assert [guest.first_name for guest in result.guests] == ["Claire", "Marc"]
    claire, marc = result.guests
    assert claire.seats == 2
    assert claire.metadata.category == "vip"
    assert marc.status == GuestStatus.CONFIRMED
    assert marc.metadata.table_number == "4"
    assert marc.metadata.confirmed is True
    assert result.errors[0].index == 1
    assert "phone: invalid phone format" in result.errors[0].errors


async def test_event_statistics_refreshed_after_import(
    reset_database, db_url: str, make_event
) -> None:
    event = await make_event()
    rows = [
        {"firstName": "A", "status": "confirmed"},
        {"firstName": "B"},
    ]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        await guest_import_service.import_batch(session, rows, event.id)
        refreshed = await session.get(Event, event.id)
        await session.refresh(refreshed)
        assert refreshed.total_guests == 2
        assert refreshed.confirmed_guests == 1


async def test_batch_at_cap_is_processed(
    reset_database, db_url: str, make_event, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GUEST_BULK_IMPORT_LIMIT", "3")
    get_settings.cache_clear()
    event = await make_event()
    rows = [{"firstName": f"Guest {number}"} for number in range(3)]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(session, rows, event.id)
    assert result.created == 3
    assert result.failed == 0


async def test_batch_over_cap_is_rejected_whole(
    reset_database, db_url: str, make_event, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GUEST_BULK_IMPORT_LIMIT", "3")
    get_settings.cache_clear()
    event = await make_event()
    rows = [{"firstName": f"Guest {number}"} for number in range(4)]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(BatchTooLargeError) as excinfo:
            await guest_import_service.import_batch(session, rows, event.id)
    assert excinfo.value.limit == 3
    assert excinfo.value.received == 4
    assert await _guest_count(db_url, event.id) == 0


async def test_missing_or_unknown_event_raises(reset_database, db_url: str, make_event) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ValidationError):
            await guest_import_service.import_batch(session, [{"firstName": "A"}], None)
        with pytest.raises(ValidationError):
            await guest_import_service.import_batch(session, [{"firstName": "A"}], "nope")
        with pytest.raises(NotFoundError):
            await guest_import_service.import_batch(
                session, [{"firstName": "A"}], uuid.uuid4()
            )


async def test_guest_limit_is_checked_for_every_row(
    reset_database, db_url: str, make_event, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MAX_GUESTS_PER_EVENT", "2")
    get_settings.cache_clear()
    event = await make_event()
    rows = [{"firstName": f"Guest {number}"} for number in range(4)]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(session, rows, event.id)
    assert result.created == 2
    assert result.failed == 2
    assert [error.index for error in result.errors] == [2, 3]
    assert all("guest limit reached" in error.reason for error in result.errors)


async def test_persisted_emails_do_not_block_import(
    reset_database, db_url: str, make_event
) -> None:
    event = await make_event()
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        await guest_service.create_guest(
            session,
            payload=GuestCreate(event_id=event.id, first_name="Jean", email="j@x.com"),
        )
        result = await guest_import_service.import_batch(
            session, [{"firstName": "Jean", "email": "j@x.com"}], event.id
        )
    assert result.created == 1
    assert await _guest_count(db_url, event.id) == 2


async def test_rows_take_the_batch_event(reset_database, db_url: str, make_event) -> None:
    event = await make_event()
    other = await make_event(name="Autre soirée")
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(
            session, [{"firstName": "Jean", "eventId": str(other.id)}], event.id
        )
    assert result.guests[0].event_id == event.id
    assert await _guest_count(db_url, other.id) == 0


async def test_fixed_row_succeeds_when_reprocessed(reset_database, db_url: str, make_event) -> None:
    event = await make_event()
    broken = {"firstName": "Jean", "lastName": "Dupont", "phone": "abc"}
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        first = await guest_import_service.import_batch(
            session, [{"firstName": "Zoé"}, broken], event.id
        )
        assert first.failed == 1
        fixed = {**broken, "phone": ""}
        second = await guest_import_service.import_batch(session, [fixed], event.id)
    assert second.created == 1
    assert second.failed == 0


async def test_import_from_semicolon_csv(reset_database, db_url: str, make_event) -> None:
    event = await make_event()
    content = (
        "\ufeffPrénom;Nom;Email;Places\n"
        "Jean;Dupont;JEAN@X.COM;2\n"
        "\n"
        ";;;\n"
        "Jean;Dupont;jean@x.com;1\n"
    ).encode("utf-8")
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_guests_from_csv(
            session, content, event.id
        )
    assert result.total == 2
    assert result.created == 1
    assert result.guests[0].email == "jean@x.com"
    assert result.guests[0].seats == 2
    assert result.errors[0].reason == DUPLICATE_IN_BATCH


async def test_store_failure_on_one_row_does_not_stop_batch(
    reset_database, db_url: str, make_event, monkeypatch: pytest.MonkeyPatch
) -> None:
    event = await make_event()
    real_create = guest_service.create_guest

    async def _flaky_create(session, *, payload, **kwargs):
        if payload.first_name == "Bruno":
            raise PersistenceError("store down")
        return await real_create(session, payload=payload, **kwargs)

    monkeypatch.setattr(guest_service, "create_guest", _flaky_create)
    rows = [{"firstName": "Anne"}, {"firstName": "Bruno"}, {"firstName": "Chloé"}]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await guest_import_service.import_batch(session, rows, event.id)

    assert result.created == 2
    assert result.failed == 1
    assert [error.index for error in result.errors] == [1]
    assert result.errors[0].reason == "store down"
    assert [guest.first_name for guest in result.guests] == ["Anne", "Chloé"]
    assert await _guest_count(db_url, event.id) == 2
