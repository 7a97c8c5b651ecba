"""Sensitive data scrubbing in logs."""

from __future__ import annotations

import logging

from secura.security.logging_filters import SensitiveFilter, scrub
from secura.security.redact import mask_email, mask_phone, redact_row


def test_scrub_masks_tokens_and_emails() -> None:
    line = 'Authorization: Bearer abc.def-ghi sent {"token": "s3cret"} to jean.dupont@example.com'
    scrubbed = scrub(line)
    assert "abc.def-ghi" not in scrubbed
    assert "s3cret" not in scrubbed
    assert "jean.dupont@" not in scrubbed
    assert "j***@example.com" in scrubbed


def test_filter_scrubs_message_arguments() -> None:
    record = logging.LogRecord(
        "secura", logging.INFO, __file__, 1, "Invited %s (%s)", ("anne@example.com", 3), None
    )
    assert SensitiveFilter().filter(record) is True
    assert record.getMessage() == "Invited a***@example.com (3)"


def test_mask_helpers() -> None:
    assert mask_email("jean@example.com") == "j***@example.com"
    assert mask_email(None) is None
    assert mask_phone("+33 6 12 34 56 78") == "***-***-5678"
    assert mask_phone("12") == "***"


def test_redact_row_masks_contact_columns_only() -> None:
    row = {"Prénom": "Jean", "Email": "jean@example.com", "Téléphone": "0612345678"}
    assert redact_row(row) == {
        "Prénom": "Jean",
        "Email": "j***@example.com",
        "Téléphone": "***-***-5678",
    }
