"""Event API tests."""
from __future__ import annotations

import datetime as dt

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def _event_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "name": "Mariage Léa & Tom",
        "type": "wedding",
        "date": (dt.date.today() + dt.timedelta(days=30)).isoformat(),
        "time": "16:00",
        "location": "Château de Vaux",
        "capacity": 2,
        "organizer_id": "org-42",
    }
    payload.update(overrides)
    return payload


async def test_event_crud_and_settings(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]

    create = await client.post("/api/v1/events", json=_event_payload())
    assert create.status_code == 201, create.text
    event = create.json()
    assert event["settings"]["qr_validation"] is True
    assert event["available_spots"] == 2
    assert event["is_past"] is False
    assert event["days_until"] in (29, 30, 31)

    invalid = await client.post("/api/v1/events", json=_event_payload(time="25:00"))
    assert invalid.status_code == 422

    update = await client.patch(
        f"/api/v1/events/{event['id']}", json={"location": "Domaine de Chantilly"}
    )
    assert update.status_code == 200
    assert update.json()["location"] == "Domaine de Chantilly"

    settings = await client.patch(
        f"/api/v1/events/{event['id']}/settings", json={"multiple_entries": True}
    )
    assert settings.status_code == 200
    assert settings.json()["settings"]["multiple_entries"] is True
    assert settings.json()["settings"]["offline_mode"] is True

    listing = await client.get("/api/v1/events", params={"organizer_id": "org-42"})
    assert [item["id"] for item in listing.json()] == [event["id"]]

    search = await client.get("/api/v1/events", params={"q": "chantilly"})
    assert [item["id"] for item in search.json()] == [event["id"]]

    both = await client.get("/api/v1/events", params={"upcoming": "true", "past": "true"})
    assert both.status_code == 400


async def test_activation_toggles(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]

    already = await client.post(f"/api/v1/events/{event_id}/activate")
    assert already.status_code == 400

    off = await client.post(f"/api/v1/events/{event_id}/deactivate")
    assert off.status_code == 200
    assert off.json()["active"] is False

    inactive = await client.get("/api/v1/events", params={"active": "false"})
    assert [item["id"] for item in inactive.json()] == [str(event_id)]


async def test_duplicate_event(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    await client.post(
        "/api/v1/guests", json={"event_id": str(event_id), "first_name": "Jean"}
    )

    copy = await client.post(f"/api/v1/events/{event_id}/duplicate")
    assert copy.status_code == 201
    body = copy.json()
    assert body["name"].endswith(" (Copy)")
    assert body["date"] == (dt.date.today() + dt.timedelta(days=7)).isoformat()
    assert body["total_guests"] == 0

    named = await client.post(
        f"/api/v1/events/{event_id}/duplicate",
        json={"name": "Gala 2027", "date": "2027-04-01"},
    )
    assert named.json()["name"] == "Gala 2027"
    assert named.json()["date"] == "2027-04-01"


async def test_organizer_event_limit(
    app_context: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    from secura.core.config import get_settings

    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    monkeypatch.setenv("MAX_EVENTS_PER_ORGANIZER", "1")
    get_settings.cache_clear()

    first = await client.post("/api/v1/events", json=_event_payload(organizer_id="solo"))
    assert first.status_code == 201
    second = await client.post("/api/v1/events", json=_event_payload(organizer_id="solo"))
    assert second.status_code == 400
    assert second.json()["detail"]["code"] == "LIMIT_REACHED"


async def test_stats_and_delete(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    created = await client.post("/api/v1/events", json=_event_payload())
    event_id = created.json()["id"]
    for name in ("Anne", "Bruno", "Chloé"):
        await client.post(
            "/api/v1/guests",
            json={"event_id": event_id, "first_name": name, "status": "confirmed"},
        )

    stats = await client.get(f"/api/v1/events/{event_id}/stats")
    assert stats.status_code == 200
    body = stats.json()
    assert body["total_guests"] == 3
    assert body["confirmed_guests"] == 3
    assert body["is_full"] is True
    assert body["available_spots"] == 0
    assert body["confirmation_rate"] == 100

    refused = await client.delete(f"/api/v1/events/{event_id}")
    assert refused.status_code == 400
    assert refused.json()["detail"]["code"] == "EVENT_HAS_GUESTS"

    forced = await client.delete(f"/api/v1/events/{event_id}", params={"force": "true"})
    assert forced.status_code == 204
    assert (await client.get(f"/api/v1/events/{event_id}")).status_code == 404
