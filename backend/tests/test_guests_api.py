"""Guest API tests: CRUD, import/export and check-in."""
from __future__ import annotations

import csv
import io

import pytest
from httpx import AsyncClient

from secura.api.v1 import guests as guests_router

pytestmark = pytest.mark.asyncio


async def _create_guest(client: AsyncClient, event_id: object, **fields: object) -> dict:
    payload = {"event_id": str(event_id), "first_name": "Jean", "last_name": "Dupont"}
    payload.update(fields)
    response = await client.post("/api/v1/guests", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_guest_crud(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]

    guest = await _create_guest(
        client,
        event_id,
        email="Jean@Example.com",
        phone="06 12 34 56 78",
        metadata={"category": "vip", "table_number": 3},
    )
    assert guest["email"] == "jean@example.com"
    assert guest["status"] == "pending"
    assert guest["metadata"]["table_number"] == "3"
    assert guest["metadata"]["category"] == "vip"
    assert guest["qr_code"]

    duplicate = await client.post(
        "/api/v1/guests",
        json={"event_id": str(event_id), "first_name": "Autre", "email": "jean@example.com"},
    )
    assert duplicate.status_code == 400

    nameless = await client.post(
        "/api/v1/guests", json={"event_id": str(event_id), "email": "x@example.com"}
    )
    assert nameless.status_code == 400

    update = await client.patch(
        f"/api/v1/guests/{guest['id']}",
        json={"phone": "", "notes": "Allergie aux noix", "metadata": {"table_number": "7"}},
    )
    assert update.status_code == 200
    assert update.json()["phone"] is None
    assert update.json()["notes"] == "Allergie aux noix"
    assert update.json()["metadata"]["table_number"] == "7"

    listing = await client.get(f"/api/v1/events/{event_id}/guests", params={"q": "dupont"})
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [guest["id"]]

    delete = await client.delete(f"/api/v1/guests/{guest['id']}")
    assert delete.status_code == 204
    missing = await client.get(f"/api/v1/guests/{guest['id']}")
    assert missing.status_code == 404


async def test_create_guest_for_unknown_event(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    response = await client.post(
        "/api/v1/guests",
        json={"event_id": "00000000-0000-4000-8000-000000000000", "first_name": "Jean"},
    )
    assert response.status_code == 404


async def test_import_rows_reports_partial_success(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]

    response = await client.post(
        f"/api/v1/events/{event_id}/guests/import",
        json={
            "rows": [
                {"firstName": "Jean", "lastName": "Dupont", "email": "j@x.com"},
                {"firstName": "Jean", "lastName": "Dupont", "email": "j@x.com"},
                {"firstName": "", "lastName": "", "email": "a@x.com"},
            ]
        },
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["total"] == 3
    assert body["created"] == 1
    assert body["failed"] == 2
    assert [error["index"] for error in body["errors"]] == [1, 2]
    assert body["errors"][0]["reason"] == "duplicate in batch"
    assert len(body["guests"]) == 1

    stats = await client.get(f"/api/v1/events/{event_id}/stats")
    assert stats.json()["total_guests"] == 1


async def test_import_over_cap_is_rejected(
    app_context: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    from secura.core.config import get_settings

    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    monkeypatch.setenv("GUEST_BULK_IMPORT_LIMIT", "2")
    get_settings.cache_clear()

    response = await client.post(
        f"/api/v1/events/{event_id}/guests/import",
        json={"rows": [{"firstName": f"G{number}"} for number in range(3)]},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "BATCH_TOO_LARGE"

    listing = await client.get(f"/api/v1/events/{event_id}/guests")
    assert listing.json() == []


async def test_csv_upload_and_export(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]

    content = (
        "firstName,lastName,email,phone,seats\n"
        "Claire,Moreau,claire@example.com,+33 6 00 00 00 00,2\n"
        "Luc,Bernard,,abc,1\n"
    ).encode("utf-8")
    upload = await client.post(
        f"/api/v1/events/{event_id}/guests/import/csv",
        files={"file": ("guests.csv", content, "text/csv")},
    )
    assert upload.status_code == 200, upload.text
    body = upload.json()
    assert body["created"] == 1
    assert body["failed"] == 1
    assert "phone: invalid phone format" in body["errors"][0]["errors"]

    export = await client.get(f"/api/v1/events/{event_id}/guests/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(export.text)))
    assert len(rows) == 1
    assert rows[0]["Prénom"] == "Claire"
    assert rows[0]["Places"] == "2"
    assert rows[0]["Scanné"] == "Non"


async def test_csv_upload_rejects_non_utf8(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    upload = await client.post(
        f"/api/v1/events/{event_id}/guests/import/csv",
        files={"file": ("guests.csv", "Prénom\nZoé\n".encode("latin-1"), "text/csv")},
    )
    assert upload.status_code == 400


async def test_check_in_flow(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    guest = await _create_guest(client, event_id)

    refused = await client.post("/api/v1/scans", json={"qr_code": guest["qr_code"]})
    assert refused.status_code == 400
    assert refused.json()["detail"]["code"] == "GUEST_NOT_SCANNABLE"

    confirmed = await client.post(
        f"/api/v1/guests/{guest['id']}/confirm", json={"confirmed_by": "accueil"}
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["can_be_scanned"] is True

    scanned = await client.post(
        "/api/v1/scans",
        json={"qr_code": guest["qr_code"], "scanner_id": "door-1", "location": "Entrée"},
    )
    assert scanned.status_code == 200
    body = scanned.json()
    assert body["scanned"] is True
    assert body["scan_count"] == 1
    assert body["scan_history"][0]["scanner_id"] == "door-1"

    again = await client.post(f"/api/v1/guests/{guest['id']}/scan")
    assert again.status_code == 400

    summary = await client.get(f"/api/v1/events/{event_id}/scans/summary")
    assert summary.json()["total"] == 3
    assert summary.json()["successful"] == 1
    assert summary.json()["failed"] == 2
    assert summary.json()["unique_guests"] == 1

    history = await client.get(
        f"/api/v1/events/{event_id}/scans", params={"success": "false"}
    )
    assert len(history.json()) == 2

    unscan = await client.post(f"/api/v1/guests/{guest['id']}/unscan")
    assert unscan.status_code == 200
    assert unscan.json()["scanned"] is False
    assert unscan.json()["scan_count"] == 1

    unknown = await client.post(
        "/api/v1/scans", json={"qr_code": "does-not-exist", "event_id": str(event_id)}
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "QR_INVALID"

    history = await client.get(
        f"/api/v1/events/{event_id}/scans", params={"success": "false"}
    )
    assert len(history.json()) == 3
    assert history.json()[0]["error_code"] == "QR_INVALID"
    assert history.json()[0]["guest_id"] is None


async def test_scan_history_is_bounded(
    app_context: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    from secura.core.config import get_settings

    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    monkeypatch.setenv("SCAN_HISTORY_LIMIT", "2")
    get_settings.cache_clear()
    guest = await _create_guest(client, app_context["event_id"], status="confirmed")

    for scanner in ("a", "b", "c"):
        response = await client.post(
            f"/api/v1/guests/{guest['id']}/scan", json={"scanner_id": scanner}
        )
        assert response.status_code == 200
        await client.post(f"/api/v1/guests/{guest['id']}/unscan")

    final = (await client.get(f"/api/v1/guests/{guest['id']}")).json()
    assert final["scan_count"] == 3
    assert [entry["scanner_id"] for entry in final["scan_history"]] == ["c", "b"]


async def test_cancel_and_bulk_operations(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    event_id = app_context["event_id"]
    first = await _create_guest(client, event_id, first_name="Anne")
    second = await _create_guest(client, event_id, first_name="Bruno")
    third = await _create_guest(client, event_id, first_name="Chloé")

    cancel = await client.post(
        f"/api/v1/guests/{third['id']}/cancel", json={"reason": "Empêchée"}
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["confirmation_history"][0]["notes"] == "Empêchée"
    cancel_again = await client.post(f"/api/v1/guests/{third['id']}/cancel")
    assert cancel_again.status_code == 400

    bulk = await client.post(
        f"/api/v1/events/{event_id}/guests/bulk-confirm",
        json={"guest_ids": [first["id"], second["id"]]},
    )
    assert bulk.status_code == 200
    assert bulk.json()["succeeded"] == 2

    tables = await client.post(
        f"/api/v1/events/{event_id}/guests/tables",
        json={"assignments": [{"guest_id": first["id"], "table_number": 5}]},
    )
    assert tables.status_code == 200
    assert tables.json()["succeeded"] == 1

    stats = await client.get(f"/api/v1/events/{event_id}/guests/stats")
    assert stats.status_code == 200
    body = stats.json()
    assert body["total"] == 3
    assert body["confirmed"] == 2
    assert body["by_status"]["cancelled"] == 1
    assert body["tables"] == {"5": 1}

    refused = await client.delete(f"/api/v1/events/{event_id}/guests")
    assert refused.status_code == 400
    deleted = await client.delete(
        f"/api/v1/events/{event_id}/guests", params={"confirm": "true"}
    )
    assert deleted.status_code == 200
    assert deleted.json() == {"deleted": 3}


async def test_csv_upload_over_size_cap_is_rejected(
    app_context: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    monkeypatch.setattr(guests_router, "_MAX_UPLOAD_BYTES", 32)
    content = ("Prénom,Nom\n" + "Jean,Dupont\n" * 10).encode("utf-8")
    upload = await client.post(
        f"/api/v1/events/{app_context['event_id']}/guests/import/csv",
        files={"file": ("guests.csv", content, "text/csv")},
    )
    assert upload.status_code == 413
    listing = await client.get(f"/api/v1/events/{app_context['event_id']}/guests")
    assert listing.json() == []
