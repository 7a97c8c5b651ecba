"""Row normalization, duplicate screening and validation rules."""

from __future__ import annotations

import pytest

from secura.schemas.guest import NAME_REQUIRED_MESSAGE
from secura.services.guest_import_service import (
    BatchDuplicateTracker,
    GuestImportRow,
    is_duplicate,
    normalize_row,
    validate_candidate,
)


def test_normalize_reads_french_headers() -> None:
    guest = normalize_row(
        {
            "Prénom": "  Jean ",
            "Nom": "Dupont",
            "Email": " Jean.Dupont@Example.COM ",
            "Téléphone": "+33 6 12 34 56 78",
            "Entreprise": "ACME",
            "Places": "3",
            "catégorie": "vip",
            "table": "12",
        }
    )
    assert guest.first_name == "Jean"
    assert guest.last_name == "Dupont"
    assert guest.email == "jean.dupont@example.com"
    assert guest.phone == "+33 6 12 34 56 78"
    assert guest.company == "ACME"
    assert guest.seats == 3
    assert guest.category == "vip"
    assert guest.table_number == "12"


def test_normalize_prefers_earlier_alias() -> None:
    guest = normalize_row({"firstName": "Anne", "prenom": "Annie"})
    assert guest.first_name == "Anne"


def test_normalize_skips_blank_alias_values() -> None:
    guest = normalize_row({"firstName": "   ", "prenom": "Annie"})
    assert guest.first_name == "Annie"


def test_normalize_applies_defaults() -> None:
    guest = normalize_row({"lastName": "Martin"})
    assert guest.first_name == ""
    assert guest.email is None
    assert guest.phone is None
    assert guest.notes is None
    assert guest.seats == 1
    assert guest.status == "pending"
    assert guest.category == "standard"


@pytest.mark.parametrize("raw_seats", ["", "deux", "2.5", None])
def test_normalize_defaults_unusable_seats(raw_seats: str | None) -> None:
    guest = normalize_row({"lastName": "Martin", "seats": raw_seats})
    assert guest.seats == 1


def test_normalize_accepts_whole_float_seats_and_lowercases_status() -> None:
    guest = normalize_row({"lastName": "Martin", "seats": "4.0", "status": "Confirmed"})
    assert guest.seats == 4
    assert guest.status == "confirmed"


def test_import_row_is_read_only() -> None:
    source = {"firstName": "Jean"}
    row = GuestImportRow.build(0, source)
    source["firstName"] = "Paul"
    assert row.raw["firstName"] == "Jean"
    with pytest.raises(TypeError):
        row.raw["firstName"] = "Luc"  # type: ignore[index]


def test_duplicate_on_matching_email() -> None:
    first = normalize_row({"firstName": "Jean", "email": "j@x.com", "eventId": "evt_1"})
    second = normalize_row({"firstName": "Paul", "email": "J@X.com", "eventId": "evt_1"})
    assert is_duplicate(second, [first])


def test_duplicate_on_names_when_both_lack_email() -> None:
    first = normalize_row({"firstName": "Jean", "lastName": "Dupont", "eventId": "e"})
    same = normalize_row({"firstName": "Jean", "lastName": "Dupont", "eventId": "e"})
    other_case = normalize_row({"firstName": "jean", "lastName": "Dupont", "eventId": "e"})
    assert is_duplicate(same, [first])
    assert not is_duplicate(other_case, [first])


def test_names_do_not_collide_when_only_one_has_email() -> None:
    first = normalize_row({"firstName": "Jean", "lastName": "Dupont", "eventId": "e"})
    second = normalize_row(
        {"firstName": "Jean", "lastName": "Dupont", "email": "jd@x.com", "eventId": "e"}
    )
    assert not is_duplicate(second, [first])


def test_different_events_never_collide() -> None:
    first = normalize_row({"firstName": "Jean", "email": "j@x.com", "eventId": "a"})
    second = normalize_row({"firstName": "Jean", "email": "j@x.com", "eventId": "b"})
    assert not is_duplicate(second, [first])


def test_tracker_only_knows_registered_rows() -> None:
    tracker = BatchDuplicateTracker()
    candidate = normalize_row({"firstName": "Jean", "email": "j@x.com", "eventId": "e"})
    assert not tracker.check(candidate)
    tracker.register(candidate)
    assert tracker.check(candidate)
    assert len(tracker) == 1


def test_validation_requires_a_name() -> None:
    candidate = normalize_row({"email": "a@x.com", "eventId": "evt_1"})
    validation = validate_candidate(candidate)
    assert not validation.valid
    assert NAME_REQUIRED_MESSAGE in validation.errors


def test_validation_requires_event() -> None:
    validation = validate_candidate(normalize_row({"firstName": "Jean"}))
    assert not validation.valid
    assert any(error.startswith("event_id") for error in validation.errors)


def test_validation_rejects_bad_phone_but_allows_empty_phone() -> None:
    bad = validate_candidate(
        normalize_row({"firstName": "Jean", "phone": "abc", "eventId": "evt_1"})
    )
    empty = validate_candidate(
        normalize_row({"firstName": "Jean", "phone": "", "eventId": "evt_1"})
    )
    assert not bad.valid
    assert bad.errors == ("phone: invalid phone format",)
    assert empty.valid


def test_validation_reports_every_problem() -> None:
    candidate = normalize_row(
        {
            "email": "not-an-email",
            "notes": "x" * 501,
            "status": "maybe",
            "eventId": "evt_1",
        }
    )
    validation = validate_candidate(candidate)
    assert not validation.valid
    assert NAME_REQUIRED_MESSAGE in validation.errors
    assert "email: invalid email format" in validation.errors
    assert any(error.startswith("notes:") for error in validation.errors)
    assert any(error.startswith("status:") for error in validation.errors)
