"""Email helpers for guest invitations and confirmations."""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from secura.core.config import get_settings
from secura.models import Event
from secura.security.redact import mask_email

logger = logging.getLogger(__name__)

__all__ = [
    "render_confirmation_email",
    "render_invitation_email",
    "send_confirmation_email",
    "send_invitation_email",
]

_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
_ENV = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)


def _event_context(event: Event) -> dict[str, object]:
    return {
        "name": event.name,
        "date": event.date,
        "time": event.time,
        "location": event.location,
        "welcome_message": event.welcome_message,
    }


def render_invitation_email(
    *,
    guest_name: str,
    event: Event,
    invitation_url: str,
    expires_at: datetime | None,
) -> str:
    template = _ENV.get_template("invitation_email.html")
    return template.render(
        guest_name=guest_name or "Guest",
        event=_event_context(event),
        invitation_url=invitation_url,
        expires_at=expires_at,
    )


def render_confirmation_email(*, guest_name: str, event: Event, qr_code: str) -> str:
    template = _ENV.get_template("confirmation_email.html")
    return template.render(
        guest_name=guest_name or "Guest",
        event=_event_context(event),
        qr_code=qr_code,
    )


def _deliver_email(to_email: str, subject: str, html_body: str) -> bool:
    """Attempt to deliver an email immediately.

    Returns True if a send was attempted (and succeeded), False if skipped due to
    missing SMTP configuration. Raises on transport errors.
    """

    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.info(
            "SMTP configuration missing; skipping email to %s", mask_email(to_email)
        )
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = to_email
    message["From"] = (
        settings.smtp_from or settings.smtp_username or "no-reply@secura.local"
    )
    message.set_content("This message contains HTML content.")
    message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=5) as server:
            if settings.smtp_username and settings.smtp_password:
                try:
                    server.starttls()
                except smtplib.SMTPException:
                    logger.debug("SMTP server does not support STARTTLS")
                server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(message)
    except Exception as exc:  # pragma: no cover - network dependent
        logger.exception("Failed to send email to %s: %s", mask_email(to_email), exc)
        raise
    return True


def send_invitation_email(
    recipient: str,
    *,
    guest_name: str,
    event: Event,
    invitation_url: str,
    expires_at: datetime | None = None,
) -> bool:
    """Send an invitation link. Transport errors propagate to the caller."""
    subject = f"Invitation: {event.name}"
    html_body = render_invitation_email(
        guest_name=guest_name,
        event=event,
        invitation_url=invitation_url,
        expires_at=expires_at,
    )
    return _deliver_email(recipient, subject, html_body)


def send_confirmation_email(
    recipient: str | None, *, guest_name: str, event: Event, qr_code: str
) -> None:
    """Send the attendance confirmation with the guest's check-in code."""

    if not recipient:
        logger.debug("Confirmation email skipped: no recipient")
        return

    subject = f"Your attendance is confirmed: {event.name}"
    html_body = render_confirmation_email(
        guest_name=guest_name, event=event, qr_code=qr_code
    )

    try:
        _deliver_email(recipient, subject, html_body)
    except Exception:  # pragma: no cover - network dependent
        logger.exception(
            "Failed to send confirmation email to %s", mask_email(recipient)
        )
