"""Test fixtures for the Secura QR backend."""
from __future__ import annotations

import datetime as dt
import os
from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from secura.core.config import get_settings
from secura.db.base import Base
from secura.db.session import dispose_engine, get_sessionmaker
from secura.main import app
from secura.models import Event, EventType


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Drop cached settings so environment overrides never leak between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


async def _seed_event(db_url: str, **overrides: object) -> Event:
    """Persist an event a week from today and return it."""
    values: dict[str, object] = {
        "name": "Gala de printemps",
        "type": EventType.PARTY,
        "date": dt.date.today() + dt.timedelta(days=7),
        "time": "19:30",
        "location": "Salle des fêtes, Lyon",
        "capacity": 200,
        "organizer_id": "org-1",
    }
    values.update(overrides)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        event = Event(**values)
        session.add(event)
        await session.commit()
        await session.refresh(event)
    return event


@pytest.fixture()
def make_event(db_url: str):
    """Return a coroutine function that persists an event."""

    async def _make(**overrides: object) -> Event:
        return await _seed_event(db_url, **overrides)

    return _make


@pytest_asyncio.fixture()
async def app_context(
    reset_database: AsyncIterator[None], db_url: str
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client and a seeded event."""
    event = await _seed_event(db_url)
    context: dict[str, object] = {"event_id": event.id}

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context
