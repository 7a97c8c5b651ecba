"""Email rendering and delivery tests."""

from __future__ import annotations

import datetime as dt

import pytest

from secura.core.config import get_settings
from secura.models import Event
from secura.services import email_service


def _event() -> Event:
    return Event(
        name="Gala de printemps",
        date=dt.date(2027, 5, 1),
        time="19:30",
        location="Lyon",
        welcome_message="Bienvenue !",
    )


def test_invitation_email_renders_event_details() -> None:
    html = email_service.render_invitation_email(
        guest_name="Jean Dupont",
        event=_event(),
        invitation_url="http://localhost:5173/invitation/abc",
        expires_at=dt.datetime(2027, 4, 1, tzinfo=dt.UTC),
    )
    assert "Jean Dupont" in html
    assert "Gala de printemps" in html
    assert "19:30" in html
    assert "http://localhost:5173/invitation/abc" in html
    assert "01/04/2027" in html


def test_confirmation_email_includes_qr_code() -> None:
    html = email_service.render_confirmation_email(
        guest_name="", event=_event(), qr_code="qr-token-123"
    )
    assert "qr-token-123" in html
    assert "Gala de printemps" in html


def test_invitation_email_escapes_guest_name() -> None:
    html = email_service.render_invitation_email(
        guest_name="<script>alert(1)</script>",
        event=_event(),
        invitation_url="http://localhost/invitation/x",
        expires_at=None,
    )
    assert "<script>" not in html


def test_delivery_skipped_without_smtp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SMTP_HOST", raising=False)
    get_settings.cache_clear()
    delivered = email_service.send_invitation_email(
        "jean@example.com",
        guest_name="Jean",
        event=_event(),
        invitation_url="http://localhost/invitation/x",
    )
    assert delivered is False


def test_delivery_uses_smtp(monkeypatch: pytest.MonkeyPatch) -> None:
    sent: list[object] = []

    class _FakeSMTP:
        def __init__(self, host: str, port: int, timeout: int | None = None) -> None:
            self.host = host

        def __enter__(self) -> "_FakeSMTP":
            return self

        def __exit__(self, *exc: object) -> None:
            return None

        def starttls(self) -> None:
            return None

        def login(self, username: str, password: str) -> None:
            return None

        def send_message(self, message: object) -> None:
            sent.append(message)

    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_FROM", "noreply@example.com")
    get_settings.cache_clear()
    monkeypatch.setattr(email_service.smtplib, "SMTP", _FakeSMTP)

    delivered = email_service.send_invitation_email(
        "jean@example.com",
        guest_name="Jean",
        event=_event(),
        invitation_url="http://localhost/invitation/x",
    )
    assert delivered is True
    assert len(sent) == 1
    assert sent[0]["To"] == "jean@example.com"
