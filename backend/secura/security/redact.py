"""Helpers for masking guest PII in logs and exports."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_EMAIL_KEYS = {"email", "courriel", "author_email", "guest_email"}
_PHONE_KEYS = {"phone", "telephone", "téléphone"}


def mask_email(value: str | None) -> str | None:
    if not value or "@" not in value:
        return value
    local, _, domain = value.partition("@")
    if not local:
        return "***@" + domain
    return f"{local[0]}***@{domain}"


def mask_phone(value: str | None) -> str | None:
    if not value:
        return value
    digits = [ch for ch in value if ch.isdigit()]
    if len(digits) < 4:
        return "***"
    return f"***-***-{''.join(digits[-4:])}"


def redact_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a raw guest row with contact details masked."""
    masked: dict[str, Any] = {}
    for key, value in row.items():
        lowered = str(key).strip().lower()
        if lowered in _EMAIL_KEYS and isinstance(value, str):
            masked[key] = mask_email(value)
        elif lowered in _PHONE_KEYS and isinstance(value, str):
            masked[key] = mask_phone(value)
        else:
            masked[key] = value
    return masked


__all__ = ["mask_email", "mask_phone", "redact_row"]
