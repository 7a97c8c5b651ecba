"""Guestbook message tests."""
from __future__ import annotations

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _post(client: AsyncClient, event_id: object, **fields: object) -> dict:
    payload = {"author": "Jean", "content": "Félicitations aux mariés !"}
    payload.update(fields)
    response = await client.post(f"/api/v1/events/{event_id}/messages", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_moderation_controls_publication(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]

    message = await _post(client, event_id, type="wish")
    assert message["status"] == "pending"
    assert message["is_published"] is False

    public = await client.get(f"/api/v1/events/{event_id}/messages", params={"public": "true"})
    assert public.json() == []

    liked_early = await client.post(f"/api/v1/messages/{message['id']}/like")
    assert liked_early.status_code == 400

    approved = await client.post(
        f"/api/v1/messages/{message['id']}/moderate",
        json={"action": "approve", "moderator": "org-1"},
    )
    assert approved.status_code == 200
    assert approved.json()["is_published"] is True
    assert approved.json()["published_at"] is not None

    liked = await client.post(f"/api/v1/messages/{message['id']}/like")
    assert liked.json()["likes"] == 1

    public = await client.get(f"/api/v1/events/{event_id}/messages", params={"public": "true"})
    assert [item["id"] for item in public.json()] == [message["id"]]


async def test_reject_requires_reason(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    message = await _post(client, event_id)

    missing = await client.post(
        f"/api/v1/messages/{message['id']}/moderate",
        json={"action": "reject", "moderator": "org-1"},
    )
    assert missing.status_code == 400

    rejected = await client.post(
        f"/api/v1/messages/{message['id']}/moderate",
        json={"action": "reject", "moderator": "org-1", "reason": "Hors sujet"},
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["moderation_reason"] == "Hors sujet"

    pending = await client.get(
        f"/api/v1/events/{event_id}/messages", params={"status": "rejected"}
    )
    assert len(pending.json()) == 1

    deleted = await client.delete(f"/api/v1/messages/{message['id']}")
    assert deleted.status_code == 204
    assert (await client.get(f"/api/v1/events/{event_id}/messages")).json() == []


async def test_inactive_event_refuses_messages(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    await client.post(f"/api/v1/events/{event_id}/deactivate")

    response = await client.post(
        f"/api/v1/events/{event_id}/messages", json={"author": "Jean", "content": "Bonjour"}
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "EVENT_INACTIVE"
