"""Invitation delivery and RSVP tests."""
from __future__ import annotations

import datetime as dt

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from secura.db.session import get_sessionmaker
from secura.models import Invitation
from secura.services import email_service

pytestmark = pytest.mark.asyncio


async def _guest(client: AsyncClient, event_id: object, **fields: object) -> dict:
    payload = {"event_id": str(event_id), "first_name": "Jean", "last_name": "Dupont"}
    payload.update(fields)
    response = await client.post("/api/v1/guests", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_invitation_accept_confirms_guest(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    guest = await _guest(client, app_context["event_id"], email="jean@example.com")

    sent = await client.post("/api/v1/invitations", json={"guest_id": guest["id"]})
    assert sent.status_code == 201, sent.text
    invitation = sent.json()
    assert invitation["status"] == "sent"
    assert invitation["error"] == "delivery skipped (no SMTP configured)"

    opened = await client.get(f"/api/v1/invitations/{invitation['token']}")
    assert opened.status_code == 200
    assert opened.json()["status"] == "opened"
    assert opened.json()["event_name"] == "Gala de printemps"

    accepted = await client.post(
        f"/api/v1/invitations/{invitation['token']}/respond",
        json={"response": "accept", "plus_ones": 1, "message": "Avec plaisir"},
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert accepted.json()["plus_ones"] == 1

    refreshed = (await client.get(f"/api/v1/guests/{guest['id']}")).json()
    assert refreshed["status"] == "confirmed"
    assert refreshed["metadata"]["invitation_sent"] is True
    assert refreshed["confirmation_history"][0]["method"] == "invitation"

    again = await client.post(
        f"/api/v1/invitations/{invitation['token']}/respond", json={"response": "decline"}
    )
    assert again.status_code == 400


async def test_invitation_decline_cancels_guest(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    guest = await _guest(client, app_context["event_id"], email="paul@example.com")
    sent = (await client.post("/api/v1/invitations", json={"guest_id": guest["id"]})).json()

    declined = await client.post(
        f"/api/v1/invitations/{sent['token']}/respond", json={"response": "decline"}
    )
    assert declined.status_code == 200
    refreshed = (await client.get(f"/api/v1/guests/{guest['id']}")).json()
    assert refreshed["status"] == "cancelled"


async def test_guest_without_email_cannot_be_invited(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    guest = await _guest(client, app_context["event_id"])
    response = await client.post("/api/v1/invitations", json={"guest_id": guest["id"]})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "GUEST_WITHOUT_EMAIL"


async def test_expired_invitation_is_refused(
    app_context: dict[str, object], db_url: str
) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    guest = await _guest(client, app_context["event_id"], email="late@example.com")
    sent = (await client.post("/api/v1/invitations", json={"guest_id": guest["id"]})).json()

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        invitation = (
            await session.execute(select(Invitation).where(Invitation.token == sent["token"]))
        ).scalar_one()
        invitation.expires_at = dt.datetime.now(dt.UTC) - dt.timedelta(days=1)
        await session.commit()

    response = await client.get(f"/api/v1/invitations/{sent['token']}")
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVITATION_EXPIRED"

    listing = await client.get(
        f"/api/v1/events/{app_context['event_id']}/invitations", params={"status": "expired"}
    )
    assert [item["token"] for item in listing.json()] == [sent["token"]]


async def test_bulk_invitations_skip_and_record_failures(
    app_context: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    await _guest(client, event_id, first_name="Anne", email="anne@example.com")
    await _guest(client, event_id, first_name="Bruno", email="bruno@example.com")
    await _guest(client, event_id, first_name="Chloé")

    def _flaky(recipient: str, **_: object) -> bool:
        if recipient.startswith("bruno"):
            raise OSError("connection refused")
        return True

    monkeypatch.setattr(email_service, "send_invitation_email", _flaky)

    response = await client.post(f"/api/v1/events/{event_id}/invitations/send")
    assert response.status_code == 200
    body = response.json()
    assert body["sent"] == 1
    assert body["failed"] == 1
    assert body["skipped"] == 1

    again = await client.post(f"/api/v1/events/{event_id}/invitations/send")
    assert again.json()["sent"] == 0
    assert again.json()["skipped"] == 1


async def test_import_can_send_invitations(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    response = await client.post(
        f"/api/v1/events/{event_id}/guests/import",
        json={
            "rows": [
                {"firstName": "Anne", "email": "anne@example.com"},
                {"firstName": "Bruno"},
            ],
            "send_invitations": True,
        },
    )
    assert response.status_code == 200
    assert response.json()["created"] == 2
    guests = response.json()["guests"]
    assert guests[0]["metadata"]["invitation_sent"] is True
    assert guests[1]["metadata"]["invitation_sent"] is False

    invitations = await client.get(f"/api/v1/events/{event_id}/invitations")
    assert len(invitations.json()) == 1
    assert invitations.json()[0]["guest_email"] == "anne@example.com"


async def test_create_guest_can_send_invitation(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    response = await client.post(
        "/api/v1/guests",
        params={"send_invitation": "true"},
        json={
            "event_id": str(app_context["event_id"]),
            "first_name": "Lucie",
            "last_name": "Martin",
            "email": "lucie@example.com",
        },
    )
    assert response.status_code == 201, response.text
    assert response.json()["metadata"]["invitation_sent"] is True

    listing = await client.get(f"/api/v1/events/{app_context['event_id']}/invitations")
    assert [item["guest_email"] for item in listing.json()] == ["lucie@example.com"]
